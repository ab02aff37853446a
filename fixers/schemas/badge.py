"""Badge, badge request and webhook schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from fixers.models.badge import BadgeAssignmentStatus, BadgeTier, BadgeType
from fixers.models.badge_request import BadgePaymentStatus, BadgeRequestStatus


class BadgeResponse(BaseModel):
    id: int
    name: str
    type: BadgeType
    description: Optional[str] = None
    price: Decimal
    expiry_months: Optional[int] = None

    model_config = {"from_attributes": True}


class BadgeAssignmentResponse(BaseModel):
    id: int
    badge: BadgeResponse
    status: BadgeAssignmentStatus
    assigned_at: datetime
    expires_at: Optional[datetime] = None
    expiring_soon: bool = False

    model_config = {"from_attributes": True}


class BadgeRequestResponse(BaseModel):
    id: int
    fixer_id: int
    badge_id: int
    payment_ref: Optional[str] = None
    payment_status: BadgePaymentStatus
    status: BadgeRequestStatus
    payment_amount: Decimal
    paid_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by_id: Optional[int] = None
    request_metadata: Optional[dict[str, Any]] = None

    model_config = {"from_attributes": True}


class ApproveBadgeRequest(BaseModel):
    admin_notes: Optional[str] = Field(None, max_length=2000)


class RejectBadgeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class FixerTierResponse(BaseModel):
    """A fixer's trust tier and the badges behind it."""

    fixer_id: int
    tier: Optional[BadgeTier] = None
    display_name: str
    color: str
    is_top_performer: bool
    active_badges: List[BadgeAssignmentResponse]


class QualityEligibilityResponse(BaseModel):
    fixer_id: int
    eligible: bool
    reasons: List[str]


class WebhookResponse(BaseModel):
    received: bool = True
    event_type: Optional[str] = None
    outcome: Optional[str] = None
    badge_request_id: Optional[int] = None
