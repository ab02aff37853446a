"""
Fixer registration bonus.

An agent earns a one-off bonus when a fixer they manage completes a first
order. The amount depends on how many fixers the agent has taken on in total.
"""

import bisect
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fixers.crud.agent_fixers import claim_bonus
from fixers.crud.agents import credit_wallet
from fixers.db import atomic
from fixers.errors import NotFoundError
from fixers.models import AgentCommission, AgentFixer, CommissionType
from fixers.models.base import utcnow
from fixers.services.notifier import NotificationEvent, Notifier, notify_safely

logger = logging.getLogger(__name__)

# (lowest total_fixers_managed, bonus)
FIXER_BONUS_TIERS = [
    (1, Decimal("50.00")),
    (11, Decimal("75.00")),
    (26, Decimal("100.00")),
    (51, Decimal("150.00")),
]
_TIER_FLOORS = [floor for floor, _ in FIXER_BONUS_TIERS]


def get_fixer_bonus_amount(total_fixers: int) -> Decimal:
    """Bonus for an agent managing `total_fixers` fixers; 0 below the first tier."""
    idx = bisect.bisect_right(_TIER_FLOORS, total_fixers) - 1
    if idx < 0:
        return Decimal("0.00")
    return FIXER_BONUS_TIERS[idx][1]


async def _get_relationship_with_agent(
    db: AsyncSession,
    agent_fixer_id: int,
) -> Optional[AgentFixer]:
    res = await db.execute(
        select(AgentFixer)
        .options(selectinload(AgentFixer.agent))
        .where(AgentFixer.id == agent_fixer_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def should_pay_fixer_bonus(
    db: AsyncSession,
    order_id: int,
    agent_fixer_id: int,
) -> bool:
    """True when `order_id` can be the qualifying first order for this relationship."""
    relationship = await _get_relationship_with_agent(db, agent_fixer_id)
    if not relationship:
        return False
    if relationship.bonus_paid:
        return False
    if relationship.first_order_id and relationship.first_order_id != order_id:
        return False
    return True


async def pay_fixer_bonus(
    db: AsyncSession,
    agent_fixer_id: int,
    order_id: int,
    notifier: Optional[Notifier] = None,
) -> Optional[AgentCommission]:
    """
    Pay the registration bonus for a relationship at most once.

    Returns the FIXER_BONUS ledger row, or None when nothing was paid
    (already paid, bonus disabled for the agent, or no applicable tier).
    The bonus is credited straight to the wallet, so its row is born paid.
    """
    relationship = await _get_relationship_with_agent(db, agent_fixer_id)
    if not relationship:
        raise NotFoundError("Agent-fixer relationship not found")

    if relationship.bonus_paid:
        return None

    agent = relationship.agent
    if not agent.fixer_bonus_enabled:
        return None

    amount = get_fixer_bonus_amount(agent.total_fixers_managed)
    if amount <= 0:
        return None

    now = utcnow()
    async with atomic(db):
        # Concurrent settlements race here; only one flips the flag
        if not await claim_bonus(db, relationship.id, amount, order_id, now):
            logger.info(f"Bonus for relationship {relationship.id} already claimed")
            return None

        commission = AgentCommission(
            agent_id=agent.id,
            order_id=order_id,
            agent_fixer_id=relationship.id,
            type=CommissionType.FIXER_BONUS,
            amount=amount,
            is_paid=True,
            paid_at=now,
        )
        db.add(commission)
        await credit_wallet(db, agent.id, amount)

    logger.info(
        f"Paid fixer bonus {amount} to agent {agent.id} "
        f"(relationship {relationship.id}, order {order_id})"
    )

    await notify_safely(
        notifier,
        NotificationEvent.BONUS_PAID,
        agent.user_id,
        {"amount": amount, "order_id": order_id},
    )
    return commission
