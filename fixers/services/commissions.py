"""
Agent commission calculation and ledger.

Rules:
- Commission = order amount x agent percentage / 100, rounded half-up to cents
- The fixer gets the remainder, so commission + net always equals the order amount
- Order commissions start unpaid and are marked paid when the agent withdraws
- Every wallet change is a relative delta committed together with its ledger row
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.crud.agents import credit_wallet, debit_wallet, get_agent_by_user_id
from fixers.db import atomic
from fixers.errors import InsufficientBalanceError, InvalidAmountError, NotFoundError
from fixers.models import Agent, AgentCommission, CommissionType
from fixers.models.base import as_utc, utcnow
from fixers.schemas.commission import (
    CommissionResponse,
    CommissionSummaryResponse,
    EarningsAnalyticsResponse,
    EarningsByStatus,
    EarningsTotal,
    MonthlyEarnings,
)
from fixers.services.notifier import NotificationEvent, Notifier, notify_safely

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
RECENT_COMMISSIONS_LIMIT = 10
TREND_MONTHS = 12


@dataclass(frozen=True)
class CommissionCalculation:
    order_amount: Decimal
    commission_percentage: Decimal
    commission_amount: Decimal
    net_to_fixer: Decimal


@dataclass(frozen=True)
class WithdrawalResult:
    withdrawn: Decimal
    commissions_marked_paid: int
    batch_total: Decimal
    wallet_balance: Decimal


def to_decimal(value: Any, name: str) -> Decimal:
    """Parse a money-like input without going through binary floating point."""
    if isinstance(value, bool):
        raise InvalidAmountError(f"{name} is not a number")
    if isinstance(value, float):
        value = str(value)
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"{name} is not a number")
    if not result.is_finite():
        raise InvalidAmountError(f"{name} must be a finite number")
    return result


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT)


def calculate_commission(order_amount: Any, commission_percentage: Any) -> CommissionCalculation:
    """Split an order amount between the managing agent and the fixer.

    Args:
        order_amount: Order value in currency units, at most cent precision
        commission_percentage: Agent share, 0-100

    Returns:
        CommissionCalculation where commission_amount + net_to_fixer == order_amount

    Raises:
        InvalidAmountError: NaN, infinite, negative or sub-cent amount, or a
            percentage outside [0, 100]
    """
    amount = to_decimal(order_amount, "Order amount")
    percentage = to_decimal(commission_percentage, "Commission percentage")

    if amount < 0:
        raise InvalidAmountError("Order amount cannot be negative")
    if amount != amount.quantize(CENT):
        raise InvalidAmountError("Order amount cannot contain fractions of a cent")
    if percentage < 0 or percentage > HUNDRED:
        raise InvalidAmountError("Commission percentage must be between 0 and 100")

    commission_amount = (amount * percentage / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    net_to_fixer = amount - commission_amount

    return CommissionCalculation(
        order_amount=amount,
        commission_percentage=percentage,
        commission_amount=commission_amount,
        net_to_fixer=net_to_fixer,
    )


async def _require_agent(db: AsyncSession, agent_user_id: int, for_update: bool = False) -> Agent:
    agent = await get_agent_by_user_id(db, agent_user_id, for_update=for_update)
    if not agent:
        raise NotFoundError("Agent not found")
    return agent


async def calculate_potential_commission(
    db: AsyncSession,
    agent_user_id: int,
    order_amount: Any,
) -> CommissionCalculation:
    """Preview the split for an order before it is created."""
    agent = await _require_agent(db, agent_user_id)
    return calculate_commission(order_amount, agent.commission_percentage)


async def record_commission(
    db: AsyncSession,
    order_id: Optional[int],
    agent_user_id: int,
    calculation: CommissionCalculation,
    notifier: Optional[Notifier] = None,
) -> AgentCommission:
    """
    Credit an agent for an order.

    The ledger row and the wallet credit commit together or not at all.
    """
    agent = await _require_agent(db, agent_user_id)

    if calculation.commission_amount <= 0:
        raise InvalidAmountError("Commission amount must be positive")

    async with atomic(db):
        commission = AgentCommission(
            agent_id=agent.id,
            order_id=order_id,
            type=CommissionType.ORDER_COMMISSION,
            amount=calculation.commission_amount,
            is_paid=False,  # Becomes paid when the agent withdraws
        )
        db.add(commission)
        await credit_wallet(db, agent.id, calculation.commission_amount)

    logger.info(
        f"Recorded commission {calculation.commission_amount} for agent {agent.id} "
        f"(order {order_id})"
    )

    await notify_safely(
        notifier,
        NotificationEvent.COMMISSION_EARNED,
        agent.user_id,
        {"amount": calculation.commission_amount, "order_id": order_id},
    )
    return commission


async def mark_commissions_as_paid(
    db: AsyncSession,
    agent_user_id: int,
    commission_ids: Iterable[int],
    withdrawal_amount: Any,
    notifier: Optional[Notifier] = None,
) -> WithdrawalResult:
    """
    Withdraw from an agent's wallet and mark a batch of commissions paid.

    The batch is chosen by the caller. Its sum is not required to equal the
    withdrawal amount; the result reports batch_total so the caller can
    reconcile, and a mismatch is logged.
    """
    amount = to_decimal(withdrawal_amount, "Withdrawal amount")
    if amount <= 0:
        raise InvalidAmountError("Withdrawal amount must be positive")

    agent = await _require_agent(db, agent_user_id, for_update=True)
    if agent.wallet_balance < amount:
        raise InsufficientBalanceError("Insufficient wallet balance")

    ids = sorted(set(commission_ids))
    batch_total = Decimal("0.00")
    marked = 0

    async with atomic(db):
        # Guarded decrement: loses cleanly to a concurrent withdrawal
        if not await debit_wallet(db, agent.id, amount):
            raise InsufficientBalanceError("Insufficient wallet balance")

        if ids:
            unpaid = (
                AgentCommission.id.in_(ids),
                AgentCommission.agent_id == agent.id,
                AgentCommission.is_paid.is_(False),
            )
            batch_total = _money(
                await db.scalar(
                    select(func.coalesce(func.sum(AgentCommission.amount), Decimal("0")))
                    .where(*unpaid)
                )
            )
            res = await db.execute(
                update(AgentCommission)
                .where(*unpaid)
                .values(is_paid=True, paid_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            marked = res.rowcount

    if batch_total != amount:
        logger.warning(
            f"Agent {agent.id} withdrew {amount} against commissions totalling "
            f"{batch_total}; caller must reconcile"
        )

    await db.refresh(agent)
    logger.info(f"Agent {agent.id} withdrew {amount}, {marked} commissions marked paid")

    await notify_safely(
        notifier,
        NotificationEvent.WITHDRAWAL_PROCESSED,
        agent.user_id,
        {"amount": amount},
    )

    return WithdrawalResult(
        withdrawn=amount,
        commissions_marked_paid=marked,
        batch_total=batch_total,
        wallet_balance=agent.wallet_balance,
    )


async def _paid_status_breakdown(db: AsyncSession, *conditions) -> list[EarningsByStatus]:
    res = await db.execute(
        select(
            AgentCommission.is_paid,
            func.coalesce(func.sum(AgentCommission.amount), Decimal("0")).label("amount"),
            func.count(AgentCommission.id).label("count"),
        )
        .where(*conditions)
        .group_by(AgentCommission.is_paid)
        .order_by(AgentCommission.is_paid)
    )
    return [
        EarningsByStatus(
            status="PAID" if row.is_paid else "PENDING",
            amount=_money(row.amount),
            count=row.count,
        )
        for row in res.all()
    ]


async def get_agent_commission_summary(
    db: AsyncSession,
    agent_user_id: int,
) -> CommissionSummaryResponse:
    """Wallet figures, pending/paid totals and the latest ledger rows."""
    agent = await _require_agent(db, agent_user_id)

    breakdown = {
        b.status: b.amount
        for b in await _paid_status_breakdown(db, AgentCommission.agent_id == agent.id)
    }

    recent = await db.execute(
        select(AgentCommission)
        .where(AgentCommission.agent_id == agent.id)
        .order_by(AgentCommission.created_at.desc(), AgentCommission.id.desc())
        .limit(RECENT_COMMISSIONS_LIMIT)
    )

    return CommissionSummaryResponse(
        wallet_balance=agent.wallet_balance,
        total_earned=agent.total_earned,
        total_withdrawn=agent.total_withdrawn,
        commission_percentage=agent.commission_percentage,
        pending_amount=breakdown.get("PENDING", Decimal("0.00")),
        paid_amount=breakdown.get("PAID", Decimal("0.00")),
        recent_commissions=[
            CommissionResponse.model_validate(c) for c in recent.scalars().all()
        ],
    )


def _trend_start(now: datetime) -> datetime:
    """First instant of the month TREND_MONTHS - 1 months before `now`'s month."""
    month_index = now.year * 12 + (now.month - 1) - (TREND_MONTHS - 1)
    return datetime(month_index // 12, month_index % 12 + 1, 1, tzinfo=timezone.utc)


async def get_agent_earnings_analytics(
    db: AsyncSession,
    agent_user_id: int,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> EarningsAnalyticsResponse:
    """
    Totals and paid/pending breakdown within an optional window, plus a
    monthly trend over the last 12 calendar months (newest first).
    """
    agent = await _require_agent(db, agent_user_id)
    now = as_utc(now or utcnow())

    conditions = [AgentCommission.agent_id == agent.id]
    if start_date:
        conditions.append(AgentCommission.created_at >= start_date)
    if end_date:
        conditions.append(AgentCommission.created_at <= end_date)

    totals = (
        await db.execute(
            select(
                func.coalesce(func.sum(AgentCommission.amount), Decimal("0")).label("amount"),
                func.count(AgentCommission.id).label("count"),
            ).where(*conditions)
        )
    ).one()
    total_amount = _money(totals.amount)
    average = (total_amount / totals.count).quantize(CENT) if totals.count else Decimal("0.00")

    by_status = await _paid_status_breakdown(db, *conditions)

    # Bucketed here rather than with date_trunc so any backend works
    rows = await db.execute(
        select(AgentCommission.created_at, AgentCommission.amount)
        .where(AgentCommission.agent_id == agent.id)
        .where(AgentCommission.created_at >= _trend_start(now))
    )
    buckets: dict[str, list[Decimal]] = defaultdict(list)
    for created_at, amount in rows.all():
        buckets[as_utc(created_at).strftime("%Y-%m")].append(_money(amount))

    monthly_trend = [
        MonthlyEarnings(month=month, total=sum(amounts, Decimal("0.00")), count=len(amounts))
        for month, amounts in sorted(buckets.items(), reverse=True)
    ]

    return EarningsAnalyticsResponse(
        total=EarningsTotal(amount=total_amount, count=totals.count, average=average),
        by_status=by_status,
        monthly_trend=monthly_trend,
    )


async def get_order_commission(db: AsyncSession, order_id: int) -> Optional[AgentCommission]:
    """The commission recorded for an order, if any."""
    res = await db.execute(
        select(AgentCommission)
        .where(AgentCommission.order_id == order_id)
        .where(AgentCommission.type == CommissionType.ORDER_COMMISSION)
        .limit(1)
    )
    return res.scalar_one_or_none()
