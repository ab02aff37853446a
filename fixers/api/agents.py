"""Agent wallet, earnings and fixer roster endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.api.deps import get_notifier
from fixers.auth.dependencies import require_agent
from fixers.db import get_db
from fixers.models import Agent
from fixers.schemas.commission import (
    CommissionQuoteResponse,
    CommissionSummaryResponse,
    EarningsAnalyticsResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)
from fixers.schemas.vetting import (
    AgentFixerResponse,
    ManagedFixerList,
    RegisterFixerRequest,
    RequiresVettingResponse,
    SubmitVettingRequest,
    VettingStatusResponse,
)
from fixers.services.commissions import (
    calculate_potential_commission,
    get_agent_commission_summary,
    get_agent_earnings_analytics,
    mark_commissions_as_paid,
)
from fixers.services.notifier import Notifier
from fixers.services.vetting import (
    get_agent_fixers_with_vetting_status,
    get_vetting_status,
    register_agent_fixer,
    requires_vetting,
    submit_fixer_for_vetting,
)

router = APIRouter(prefix="/agents/me", tags=["Agents"])


# ── Wallet and earnings ──────────────────────────────────────────────

@router.get("/commissions/summary", response_model=CommissionSummaryResponse)
async def commission_summary(
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(require_agent),
):
    """Wallet figures and the latest commissions."""
    return await get_agent_commission_summary(db, agent.user_id)


@router.get("/commissions/analytics", response_model=EarningsAnalyticsResponse)
async def commission_analytics(
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(require_agent),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
):
    """Earnings totals, paid/pending split and monthly trend."""
    return await get_agent_earnings_analytics(db, agent.user_id, start_date, end_date)


@router.get("/commissions/quote", response_model=CommissionQuoteResponse)
async def commission_quote(
    amount: Decimal = Query(..., ge=0),
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(require_agent),
):
    """Preview the agent/fixer split of an order amount."""
    calculation = await calculate_potential_commission(db, agent.user_id, amount)
    return CommissionQuoteResponse(
        order_amount=calculation.order_amount,
        commission_percentage=calculation.commission_percentage,
        commission_amount=calculation.commission_amount,
        net_to_fixer=calculation.net_to_fixer,
    )


@router.post("/withdrawals", response_model=WithdrawalResponse)
async def withdraw(
    data: WithdrawalRequest,
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(require_agent),
    notifier: Optional[Notifier] = Depends(get_notifier),
):
    """Withdraw from the wallet against a batch of commissions."""
    result = await mark_commissions_as_paid(
        db,
        agent.user_id,
        data.commission_ids,
        data.amount,
        notifier=notifier,
    )
    return WithdrawalResponse(
        withdrawn=result.withdrawn,
        commissions_marked_paid=result.commissions_marked_paid,
        batch_total=result.batch_total,
        wallet_balance=result.wallet_balance,
    )


# ── Fixer roster ─────────────────────────────────────────────────────

@router.get("/fixers", response_model=ManagedFixerList)
async def list_fixers(
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(require_agent),
):
    """Fixers managed by the agent with their vetting status."""
    items = await get_agent_fixers_with_vetting_status(db, agent.id)
    return ManagedFixerList(items=items, total=len(items))


@router.post(
    "/fixers",
    response_model=AgentFixerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def register_fixer(
    data: RegisterFixerRequest,
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(require_agent),
    notifier: Optional[Notifier] = Depends(get_notifier),
):
    """Add a fixer to the roster. The fixer starts pending vetting."""
    return await register_agent_fixer(
        db, agent.id, data.fixer_id, notes=data.notes, notifier=notifier
    )


@router.post("/fixers/{fixer_id}/vetting", response_model=AgentFixerResponse)
async def submit_for_vetting(
    fixer_id: int,
    data: SubmitVettingRequest,
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(require_agent),
    notifier: Optional[Notifier] = Depends(get_notifier),
):
    """Send a pending fixer to the admin vetting queue."""
    return await submit_fixer_for_vetting(
        db, agent.id, fixer_id, notes=data.notes, notifier=notifier
    )


@router.get("/fixers/{fixer_id}/vetting", response_model=VettingStatusResponse)
async def vetting_status(
    fixer_id: int,
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(require_agent),
):
    result = await get_vetting_status(db, agent.id, fixer_id)
    return VettingStatusResponse(
        relationship_id=result.relationship_id,
        status=result.status,
        approved_by=result.approved_by,
        approved_at=result.approved_at,
        rejected_at=result.rejected_at,
        rejection_reason=result.rejection_reason,
    )


@router.get("/fixers/{fixer_id}/can-assign", response_model=RequiresVettingResponse)
async def can_assign(
    fixer_id: int,
    db: AsyncSession = Depends(get_db),
    agent: Agent = Depends(require_agent),
):
    """Whether work can be routed to the fixer yet."""
    return RequiresVettingResponse(
        agent_id=agent.id,
        fixer_id=fixer_id,
        requires_vetting=await requires_vetting(db, agent.id, fixer_id),
    )
