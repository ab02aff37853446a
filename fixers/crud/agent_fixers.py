"""
Agent-fixer relationship lookups and guarded state transitions.

Every transition is a compare-and-swap: the UPDATE names the state the
caller observed, and an affected-row count of zero means another request
got there first.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.models import AgentFixer, RelationshipStatus, VetStatus


async def get_relationship(
    db: AsyncSession,
    agent_id: int,
    fixer_id: int,
) -> Optional[AgentFixer]:
    res = await db.execute(
        select(AgentFixer)
        .where(AgentFixer.agent_id == agent_id)
        .where(AgentFixer.fixer_id == fixer_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def get_active_relationship_for_fixer(
    db: AsyncSession,
    fixer_id: int,
    vet_status: Optional[VetStatus] = None,
) -> Optional[AgentFixer]:
    """The oldest ACTIVE relationship of a fixer, optionally with a given vet status."""
    stmt = (
        select(AgentFixer)
        .where(AgentFixer.fixer_id == fixer_id)
        .where(AgentFixer.status == RelationshipStatus.ACTIVE)
    )
    if vet_status is not None:
        stmt = stmt.where(AgentFixer.vet_status == vet_status)
    res = await db.execute(
        stmt
        .order_by(AgentFixer.registered_at, AgentFixer.id)
        .limit(1)
    )
    return res.scalar_one_or_none()


async def count_active_fixers(db: AsyncSession, agent_id: int) -> int:
    res = await db.execute(
        select(func.count(AgentFixer.id))
        .where(AgentFixer.agent_id == agent_id)
        .where(AgentFixer.status == RelationshipStatus.ACTIVE)
    )
    return int(res.scalar() or 0)


async def update_if_pending(
    db: AsyncSession,
    relationship_id: int,
    **values: Any,
) -> bool:
    """Apply `values` only while vet_status is still PENDING."""
    res = await db.execute(
        update(AgentFixer)
        .where(AgentFixer.id == relationship_id)
        .where(AgentFixer.vet_status == VetStatus.PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def claim_bonus(
    db: AsyncSession,
    relationship_id: int,
    amount: Decimal,
    order_id: int,
    paid_at: datetime,
) -> bool:
    """Flip bonus_paid False -> True. False if it was already paid."""
    res = await db.execute(
        update(AgentFixer)
        .where(AgentFixer.id == relationship_id)
        .where(AgentFixer.bonus_paid.is_(False))
        .values(
            bonus_paid=True,
            bonus_amount=amount,
            bonus_paid_at=paid_at,
            first_order_id=order_id,
        )
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1
