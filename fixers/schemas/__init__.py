"""Pydantic schemas for request/response validation."""

from fixers.schemas.badge import (
    ApproveBadgeRequest,
    BadgeAssignmentResponse,
    BadgeRequestResponse,
    BadgeResponse,
    FixerTierResponse,
    QualityEligibilityResponse,
    RejectBadgeRequest,
    WebhookResponse,
)
from fixers.schemas.commission import (
    CommissionQuoteResponse,
    CommissionResponse,
    CommissionSummaryResponse,
    EarningsAnalyticsResponse,
    WithdrawalRequest,
    WithdrawalResponse,
)
from fixers.schemas.vetting import (
    AgentFixerResponse,
    ApproveVettingRequest,
    ManagedFixerList,
    PendingVettingItem,
    RegisterFixerRequest,
    RejectVettingRequest,
    RequiresVettingResponse,
    SubmitVettingRequest,
    VettingStatusResponse,
)

__all__ = [
    # Commission
    "CommissionResponse",
    "CommissionSummaryResponse",
    "CommissionQuoteResponse",
    "EarningsAnalyticsResponse",
    "WithdrawalRequest",
    "WithdrawalResponse",
    # Vetting
    "AgentFixerResponse",
    "ApproveVettingRequest",
    "ManagedFixerList",
    "PendingVettingItem",
    "RegisterFixerRequest",
    "RejectVettingRequest",
    "RequiresVettingResponse",
    "SubmitVettingRequest",
    "VettingStatusResponse",
    # Badges
    "ApproveBadgeRequest",
    "BadgeAssignmentResponse",
    "BadgeRequestResponse",
    "BadgeResponse",
    "FixerTierResponse",
    "QualityEligibilityResponse",
    "RejectBadgeRequest",
    "WebhookResponse",
]
