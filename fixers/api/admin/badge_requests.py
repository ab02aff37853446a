"""Admin review of badge requests."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.api.deps import get_notifier
from fixers.auth.dependencies import require_admin
from fixers.db import get_db
from fixers.models import User
from fixers.schemas.badge import (
    ApproveBadgeRequest,
    BadgeRequestResponse,
    RejectBadgeRequest,
)
from fixers.services.badge_requests import (
    approve_badge_request,
    mark_under_review,
    reject_badge_request,
)
from fixers.services.notifier import Notifier

router = APIRouter(prefix="/badge-requests")


@router.post("/{request_id}/review", response_model=BadgeRequestResponse)
async def start_review(
    request_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return await mark_under_review(db, request_id, current_user.id)


@router.post("/{request_id}/approve", response_model=BadgeRequestResponse)
async def approve_request(
    request_id: int,
    data: ApproveBadgeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    notifier: Optional[Notifier] = Depends(get_notifier),
):
    """Approve a paid request and grant the badge."""
    return await approve_badge_request(
        db,
        request_id,
        current_user.id,
        admin_notes=data.admin_notes,
        notifier=notifier,
    )


@router.post("/{request_id}/reject", response_model=BadgeRequestResponse)
async def reject_request(
    request_id: int,
    data: RejectBadgeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    notifier: Optional[Notifier] = Depends(get_notifier),
):
    return await reject_badge_request(
        db,
        request_id,
        current_user.id,
        data.reason,
        notifier=notifier,
    )
