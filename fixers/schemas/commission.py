"""Agent commission, wallet and earnings schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from fixers.models.ledger import CommissionType


class CommissionResponse(BaseModel):
    """A single ledger row."""

    id: int
    agent_id: int
    order_id: Optional[int] = None
    agent_fixer_id: Optional[int] = None
    type: CommissionType
    amount: Decimal
    is_paid: bool
    paid_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CommissionSummaryResponse(BaseModel):
    """Wallet figures plus ledger totals for the agent dashboard."""

    wallet_balance: Decimal
    total_earned: Decimal
    total_withdrawn: Decimal
    commission_percentage: Decimal
    pending_amount: Decimal
    paid_amount: Decimal
    recent_commissions: List[CommissionResponse]


class EarningsTotal(BaseModel):
    amount: Decimal
    count: int
    average: Decimal


class EarningsByStatus(BaseModel):
    status: str  # PAID or PENDING
    amount: Decimal
    count: int


class MonthlyEarnings(BaseModel):
    month: str  # YYYY-MM
    total: Decimal
    count: int


class EarningsAnalyticsResponse(BaseModel):
    total: EarningsTotal
    by_status: List[EarningsByStatus]
    monthly_trend: List[MonthlyEarnings]


class WithdrawalRequest(BaseModel):
    """Agent withdrawal against a batch of commissions."""

    amount: Decimal = Field(..., gt=0)
    commission_ids: List[int] = Field(default_factory=list)


class WithdrawalResponse(BaseModel):
    withdrawn: Decimal
    commissions_marked_paid: int
    batch_total: Decimal
    wallet_balance: Decimal


class CommissionQuoteResponse(BaseModel):
    """Split of an order amount between agent and fixer."""

    order_amount: Decimal
    commission_percentage: Decimal
    commission_amount: Decimal
    net_to_fixer: Decimal
