"""
Agent payouts for a completed order.

Order completion -> commission for the managing agent -> first-order bonus.
Settling the same order twice records nothing new.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fixers.crud.agent_fixers import get_active_relationship_for_fixer
from fixers.errors import InvalidStateError, NotFoundError
from fixers.models import Agent, AgentCommission, Order, OrderStatus, VetStatus
from fixers.services.bonuses import pay_fixer_bonus, should_pay_fixer_bonus
from fixers.services.commissions import (
    calculate_commission,
    get_order_commission,
    record_commission,
)
from fixers.services.notifier import Notifier

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    order_id: int
    agent_id: Optional[int] = None
    commission: Optional[AgentCommission] = None
    bonus: Optional[AgentCommission] = None
    already_settled: bool = False


async def settle_completed_order(
    db: AsyncSession,
    order_id: int,
    notifier: Optional[Notifier] = None,
) -> SettlementResult:
    """
    Credit the agent managing the order's fixer.

    Orders of fixers without an ACTIVE agent settle to nothing. When the
    fixer has agents but none has approved vetting, settlement is refused.
    """
    order = await db.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    if order.status != OrderStatus.COMPLETED:
        raise InvalidStateError(f"Order is {order.status.value}, expected COMPLETED")

    result = SettlementResult(order_id=order.id)

    # A fixer may sit under several agents; the oldest approved one is paid
    relationship = await get_active_relationship_for_fixer(
        db, order.fixer_id, vet_status=VetStatus.APPROVED
    )
    if not relationship:
        if await get_active_relationship_for_fixer(db, order.fixer_id):
            raise InvalidStateError("Fixer has not been approved by any managing agent")
        logger.info(f"Order {order.id}: fixer {order.fixer_id} has no managing agent")
        return result

    agent = await db.get(Agent, relationship.agent_id)
    result.agent_id = agent.id

    existing = await get_order_commission(db, order.id)
    if existing:
        result.commission = existing
        result.already_settled = True
    else:
        calculation = calculate_commission(order.total_amount, agent.commission_percentage)
        if calculation.commission_amount > 0:
            result.commission = await record_commission(
                db, order.id, agent.user_id, calculation, notifier=notifier
            )

    if await should_pay_fixer_bonus(db, order.id, relationship.id):
        result.bonus = await pay_fixer_bonus(db, relationship.id, order.id, notifier=notifier)

    logger.info(
        f"Settled order {order.id} for agent {agent.id}: "
        f"commission={'yes' if result.commission else 'no'}, bonus={'yes' if result.bonus else 'no'}"
    )
    return result
