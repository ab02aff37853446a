"""
Admin review of paid badge requests.

A request can only be approved once its payment has been received. Approval
grants the badge and refreshes the fixer's tier.
"""

import calendar
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fixers.crud.badge_requests import get_with_badge, transition
from fixers.db import atomic
from fixers.errors import FixersError, InvalidStateError, NotFoundError
from fixers.models import (
    BadgeAssignment,
    BadgeAssignmentStatus,
    BadgePaymentStatus,
    BadgeRequest,
    BadgeRequestStatus,
)
from fixers.models.base import utcnow
from fixers.services.badges import update_fixer_badge_tier
from fixers.services.notifier import NotificationEvent, Notifier, notify_safely

logger = logging.getLogger(__name__)

REVIEWABLE = [BadgeRequestStatus.PAYMENT_RECEIVED, BadgeRequestStatus.UNDER_REVIEW]
REJECTABLE = [BadgeRequestStatus.PENDING, *REVIEWABLE]


def add_months(value: datetime, months: int) -> datetime:
    """Same day `months` later, clamped to the end of shorter months."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


async def _require_request(db: AsyncSession, request_id: int) -> BadgeRequest:
    request = await get_with_badge(db, request_id)
    if not request:
        raise NotFoundError("Badge request not found")
    return request


async def mark_under_review(
    db: AsyncSession,
    request_id: int,
    admin_user_id: int,
) -> BadgeRequest:
    request = await _require_request(db, request_id)

    async with atomic(db):
        moved = await transition(
            db,
            request.id,
            from_statuses=[BadgeRequestStatus.PAYMENT_RECEIVED],
            from_payment_statuses=[BadgePaymentStatus.PAID],
            status=BadgeRequestStatus.UNDER_REVIEW,
            reviewed_by_id=admin_user_id,
        )
        if not moved:
            raise InvalidStateError(
                f"Badge request is {request.status.value}, expected PAYMENT_RECEIVED"
            )

    request = await _require_request(db, request.id)
    logger.info(f"Badge request {request.id} under review by user {admin_user_id}")
    return request


async def approve_badge_request(
    db: AsyncSession,
    request_id: int,
    admin_user_id: int,
    admin_notes: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> BadgeRequest:
    """
    Approve a paid request, grant the badge and recompute the fixer's tier.

    The assignment expires badge.expiry_months after approval, or never.
    """
    request = await _require_request(db, request_id)
    if request.payment_status != BadgePaymentStatus.PAID or request.status not in REVIEWABLE:
        raise InvalidStateError("Only paid badge requests awaiting review can be approved")

    now = utcnow()
    values = {
        "status": BadgeRequestStatus.APPROVED,
        "reviewed_at": now,
        "reviewed_by_id": admin_user_id,
    }
    if admin_notes is not None:
        values["admin_notes"] = admin_notes

    badge = request.badge
    async with atomic(db):
        approved = await transition(
            db,
            request.id,
            from_statuses=REVIEWABLE,
            from_payment_statuses=[BadgePaymentStatus.PAID],
            **values,
        )
        if not approved:
            raise InvalidStateError("Badge request was reviewed concurrently")

        db.add(
            BadgeAssignment(
                fixer_id=request.fixer_id,
                badge_id=badge.id,
                request_id=request.id,
                status=BadgeAssignmentStatus.ACTIVE,
                assigned_at=now,
                expires_at=add_months(now, badge.expiry_months) if badge.expiry_months else None,
            )
        )

    logger.info(f"Badge request {request.id} approved by user {admin_user_id}")

    tier = await update_fixer_badge_tier(db, request.fixer_id, now)
    request = await _require_request(db, request.id)

    await notify_safely(
        notifier,
        NotificationEvent.BADGE_APPROVED,
        request.fixer_id,
        {"badge_name": badge.name, "tier": tier.value if tier else "none"},
    )
    return request


async def reject_badge_request(
    db: AsyncSession,
    request_id: int,
    admin_user_id: int,
    reason: str,
    notifier: Optional[Notifier] = None,
) -> BadgeRequest:
    """Reject a request that has not reached a final state. Refunds are handled by Stripe."""
    if not reason or not reason.strip():
        raise FixersError("A rejection reason is required")

    request = await _require_request(db, request_id)
    if request.status not in REJECTABLE:
        raise InvalidStateError(f"Badge request is already {request.status.value}")

    async with atomic(db):
        rejected = await transition(
            db,
            request.id,
            from_statuses=REJECTABLE,
            status=BadgeRequestStatus.REJECTED,
            rejection_reason=reason,
            reviewed_at=utcnow(),
            reviewed_by_id=admin_user_id,
        )
        if not rejected:
            raise InvalidStateError("Badge request was reviewed concurrently")

    request = await _require_request(db, request.id)
    logger.info(f"Badge request {request.id} rejected by user {admin_user_id}: {reason}")

    await notify_safely(
        notifier,
        NotificationEvent.BADGE_REJECTED,
        request.fixer_id,
        {"badge_name": request.badge.name, "reason": reason},
    )
    return request
