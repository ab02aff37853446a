"""Fixer trust tier and badge eligibility endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.auth.dependencies import get_current_user
from fixers.db import get_db
from fixers.models import User, UserRole
from fixers.schemas.badge import (
    BadgeAssignmentResponse,
    BadgeResponse,
    FixerTierResponse,
    QualityEligibilityResponse,
)
from fixers.services.badges import (
    calculate_badge_tier,
    check_quality_performance_criteria,
    check_top_performer_status,
    get_badge_display_name,
    get_fixer_active_badges,
    get_tier_color,
    is_expiring_soon,
)

router = APIRouter(prefix="/fixers", tags=["Fixers"])


async def _require_fixer(db: AsyncSession, fixer_id: int) -> User:
    fixer = await db.get(User, fixer_id)
    if not fixer or fixer.role != UserRole.FIXER:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Fixer not found",
        )
    return fixer


@router.get("/{fixer_id}/tier", response_model=FixerTierResponse)
async def fixer_tier(
    fixer_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Live tier computed from active badges and the performance ranking."""
    fixer = await _require_fixer(db, fixer_id)
    tier = await calculate_badge_tier(db, fixer.id)
    badges = await get_fixer_active_badges(db, fixer.id)

    return FixerTierResponse(
        fixer_id=fixer.id,
        tier=tier,
        display_name=get_badge_display_name(fixer.name or "Fixer", tier),
        color=get_tier_color(tier),
        is_top_performer=await check_top_performer_status(db, fixer.id),
        active_badges=[
            BadgeAssignmentResponse(
                id=assignment.id,
                badge=BadgeResponse.model_validate(assignment.badge),
                status=assignment.status,
                assigned_at=assignment.assigned_at,
                expires_at=assignment.expires_at,
                expiring_soon=is_expiring_soon(assignment.expires_at),
            )
            for assignment in badges
        ],
    )


@router.get("/{fixer_id}/quality-eligibility", response_model=QualityEligibilityResponse)
async def quality_eligibility(
    fixer_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Which quality badge thresholds the fixer still misses."""
    fixer = await _require_fixer(db, fixer_id)
    result = await check_quality_performance_criteria(db, fixer.id)
    return QualityEligibilityResponse(
        fixer_id=fixer.id,
        eligible=result.eligible,
        reasons=result.reasons,
    )
