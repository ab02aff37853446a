"""
Agent lookups and wallet mutations.

Wallet changes are relative UPDATEs evaluated by the database, never a
read-modify-write of a loaded value, so concurrent credits and withdrawals
for the same agent compose correctly. Loaded Agent instances are not
synchronised; callers refresh them when they need the new figures.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.models import Agent


async def get_agent_by_user_id(
    db: AsyncSession,
    user_id: int,
    for_update: bool = False,
) -> Optional[Agent]:
    stmt = (
        select(Agent)
        .where(Agent.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def credit_wallet(db: AsyncSession, agent_id: int, amount: Decimal) -> None:
    """Add `amount` to wallet_balance and total_earned."""
    await db.execute(
        update(Agent)
        .where(Agent.id == agent_id)
        .values(
            wallet_balance=Agent.wallet_balance + amount,
            total_earned=Agent.total_earned + amount,
        )
        .execution_options(synchronize_session=False)
    )


async def debit_wallet(db: AsyncSession, agent_id: int, amount: Decimal) -> bool:
    """
    Move `amount` from wallet_balance to total_withdrawn.

    Returns False, writing nothing, when the balance is below `amount` at
    the moment the UPDATE runs.
    """
    res = await db.execute(
        update(Agent)
        .where(Agent.id == agent_id)
        .where(Agent.wallet_balance >= amount)
        .values(
            wallet_balance=Agent.wallet_balance - amount,
            total_withdrawn=Agent.total_withdrawn + amount,
        )
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def increment_fixers_managed(db: AsyncSession, agent_id: int) -> None:
    await db.execute(
        update(Agent)
        .where(Agent.id == agent_id)
        .values(total_fixers_managed=Agent.total_fixers_managed + 1)
        .execution_options(synchronize_session=False)
    )
