"""
Trust badge tiers and fixer performance ranking.

Tiers come from the number of active badges:
- BRONZE: 1-2
- SILVER: 3-4
- GOLD: 5+
- PLATINUM: 5+ and in the top performers of the whole fixer population

A badge assignment is active while its status is ACTIVE and it has no
expiry or expires in the future.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fixers.config import settings
from fixers.db import atomic
from fixers.models import (
    Badge,
    BadgeAssignment,
    BadgeAssignmentStatus,
    BadgeTier,
    BadgeType,
    FixerProfile,
    Order,
    OrderStatus,
    Review,
    User,
    UserRole,
)
from fixers.models.base import as_utc, utcnow

logger = logging.getLogger(__name__)

# Score weights
JOBS_WEIGHT = 0.30
RATING_WEIGHT = 0.25
RESPONSE_WEIGHT = 0.20
SATISFACTION_WEIGHT = 0.15
TENURE_WEIGHT = 0.10

JOBS_CEILING = 100
MAX_RATING = 5
RESPONSE_CEILING_MINUTES = 240
UNKNOWN_RESPONSE_MINUTES = 999
TENURE_CEILING_DAYS = 365
SATISFIED_RATING = 4

EXPIRING_SOON_DAYS = 30

TIER_LABELS = {
    BadgeTier.BRONZE: "Verified",
    BadgeTier.SILVER: "Trusted Professional",
    BadgeTier.GOLD: "Premium Verified",
    BadgeTier.PLATINUM: "Elite Professional",
}

TIER_COLORS = {
    BadgeTier.BRONZE: "#CD7F32",
    BadgeTier.SILVER: "#C0C0C0",
    BadgeTier.GOLD: "#FFD700",
    BadgeTier.PLATINUM: "#E5E4E2",
}
NO_TIER_COLOR = "#6B7280"


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Inputs to a fixer's performance score, derived from profile, reviews and tenure."""

    fixer_id: int
    jobs_completed: int = 0
    average_rating: float = 0.0
    average_response_minutes: Optional[int] = None
    satisfied_reviews: int = 0
    total_reviews: int = 0
    tenure_days: int = 0


@dataclass
class QualityEligibility:
    eligible: bool
    reasons: list[str] = field(default_factory=list)


# ── Tier from badge count ────────────────────────────────────────────

def calculate_badge_tier_from_count(badge_count: int) -> Optional[BadgeTier]:
    """Tier for a count of active badges. 5+ is GOLD; PLATINUM needs the ranking too."""
    if badge_count <= 0:
        return None
    if badge_count <= 2:
        return BadgeTier.BRONZE
    if badge_count <= 4:
        return BadgeTier.SILVER
    return BadgeTier.GOLD


def _active_assignment_filter(now: datetime):
    return (
        BadgeAssignment.status == BadgeAssignmentStatus.ACTIVE,
        or_(BadgeAssignment.expires_at.is_(None), BadgeAssignment.expires_at > now),
    )


async def count_active_badges(
    db: AsyncSession,
    fixer_id: int,
    now: Optional[datetime] = None,
) -> int:
    now = now or utcnow()
    res = await db.execute(
        select(func.count(BadgeAssignment.id))
        .where(BadgeAssignment.fixer_id == fixer_id)
        .where(*_active_assignment_filter(now))
    )
    return int(res.scalar() or 0)


async def calculate_badge_tier(
    db: AsyncSession,
    fixer_id: int,
    now: Optional[datetime] = None,
    top_performers: Optional[set[int]] = None,
) -> Optional[BadgeTier]:
    """
    Tier from the active badge count, PLATINUM for top-ranked GOLD fixers.

    Pass `top_performers` from load_top_performers when computing many
    tiers, so the population is ranked once.
    """
    now = now or utcnow()
    tier = calculate_badge_tier_from_count(await count_active_badges(db, fixer_id, now))
    if tier != BadgeTier.GOLD:
        return tier
    if top_performers is None:
        is_top = await check_top_performer_status(db, fixer_id, now)
    else:
        is_top = fixer_id in top_performers
    return BadgeTier.PLATINUM if is_top else tier


# ── Performance ranking ──────────────────────────────────────────────

def compute_performance_score(snapshot: PerformanceSnapshot) -> float:
    """
    Weighted score in [0, 1].

    Jobs count towards the score only up to JOBS_CEILING; beyond that every
    fixer earns the full jobs weight. A fixer without a measured response
    time is scored as UNKNOWN_RESPONSE_MINUTES, which earns nothing.
    """
    jobs = min(max(snapshot.jobs_completed, 0), JOBS_CEILING) / JOBS_CEILING
    rating = snapshot.average_rating / MAX_RATING

    response_minutes = snapshot.average_response_minutes
    if response_minutes is None:
        response_minutes = UNKNOWN_RESPONSE_MINUTES
    response = 1 - min(max(response_minutes, 0), RESPONSE_CEILING_MINUTES) / RESPONSE_CEILING_MINUTES

    satisfaction = snapshot.satisfied_reviews / max(snapshot.total_reviews, 1)
    tenure = min(max(snapshot.tenure_days, 0), TENURE_CEILING_DAYS) / TENURE_CEILING_DAYS

    return (
        JOBS_WEIGHT * jobs
        + RATING_WEIGHT * rating
        + RESPONSE_WEIGHT * response
        + SATISFACTION_WEIGHT * satisfaction
        + TENURE_WEIGHT * tenure
    )


def rank_fixers(scores: dict[int, float]) -> list[int]:
    """Fixer ids by descending score; equal scores fall back to ascending id."""
    return sorted(scores, key=lambda fixer_id: (-scores[fixer_id], fixer_id))


def top_performer_cutoff(population: int, fraction: float) -> int:
    """How many of the best-ranked fixers count as top performers."""
    return math.ceil(population * fraction)


async def load_performance_snapshots(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> list[PerformanceSnapshot]:
    """Snapshots for every fixer with a profile."""
    now = as_utc(now or utcnow())

    profiles = await db.execute(
        select(
            User.id,
            User.created_at,
            FixerProfile.total_jobs_completed,
            FixerProfile.average_response_minutes,
        )
        .join(FixerProfile, FixerProfile.user_id == User.id)
        .where(User.role == UserRole.FIXER)
    )

    reviews = await db.execute(
        select(
            Review.fixer_id,
            func.count(Review.id),
            func.avg(Review.rating),
            func.sum(case((Review.rating >= SATISFIED_RATING, 1), else_=0)),
        )
        .where(Review.is_visible.is_(True))
        .group_by(Review.fixer_id)
    )
    review_stats = {
        fixer_id: (count, float(avg or 0), int(satisfied or 0))
        for fixer_id, count, avg, satisfied in reviews.all()
    }

    snapshots = []
    for fixer_id, created_at, jobs, response_minutes in profiles.all():
        total_reviews, avg_rating, satisfied = review_stats.get(fixer_id, (0, 0.0, 0))
        tenure_days = (now - as_utc(created_at)).days if created_at else 0
        snapshots.append(
            PerformanceSnapshot(
                fixer_id=fixer_id,
                jobs_completed=jobs or 0,
                average_rating=avg_rating,
                average_response_minutes=response_minutes,
                satisfied_reviews=satisfied,
                total_reviews=total_reviews,
                tenure_days=tenure_days,
            )
        )
    return snapshots


async def load_top_performers(
    db: AsyncSession,
    now: Optional[datetime] = None,
    fraction: Optional[float] = None,
) -> set[int]:
    """Ids of the fixers ranked within the top `fraction` of all fixers."""
    fraction = settings.top_performer_fraction if fraction is None else fraction
    snapshots = await load_performance_snapshots(db, now)

    scores = {s.fixer_id: compute_performance_score(s) for s in snapshots}
    ranking = rank_fixers(scores)
    return set(ranking[: top_performer_cutoff(len(ranking), fraction)])


async def check_top_performer_status(
    db: AsyncSession,
    fixer_id: int,
    now: Optional[datetime] = None,
    fraction: Optional[float] = None,
) -> bool:
    """Whether the fixer ranks within the top `fraction` of all fixers."""
    return fixer_id in await load_top_performers(db, now, fraction)


# ── Quality performance badge ────────────────────────────────────────

async def check_quality_performance_criteria(
    db: AsyncSession,
    fixer_id: int,
    badge_id: Optional[int] = None,
) -> QualityEligibility:
    """
    Compare a fixer against a quality badge's configured thresholds.

    Uses `badge_id` when given, otherwise the first QUALITY_PERFORMANCE
    badge. Unset thresholds are skipped. Read-only.
    """
    res = await db.execute(select(FixerProfile).where(FixerProfile.user_id == fixer_id))
    profile = res.scalar_one_or_none()
    if not profile:
        return QualityEligibility(eligible=False, reasons=["Fixer profile not found"])

    if badge_id is not None:
        badge = await db.get(Badge, badge_id)
    else:
        res = await db.execute(
            select(Badge)
            .where(Badge.type == BadgeType.QUALITY_PERFORMANCE)
            .order_by(Badge.id)
            .limit(1)
        )
        badge = res.scalar_one_or_none()
    if not badge:
        return QualityEligibility(eligible=False, reasons=["Quality badge not configured"])

    reasons = []

    if badge.min_jobs_required is not None and profile.total_jobs_completed < badge.min_jobs_required:
        reasons.append(
            f"Need {badge.min_jobs_required} completed jobs (have {profile.total_jobs_completed})"
        )

    avg_rating = await db.scalar(
        select(func.avg(Review.rating))
        .where(Review.fixer_id == fixer_id)
        .where(Review.is_visible.is_(True))
    )
    avg_rating = float(avg_rating or 0)
    if badge.min_average_rating is not None and avg_rating < badge.min_average_rating:
        reasons.append(
            f"Need {badge.min_average_rating}+ star rating (have {avg_rating:.1f})"
        )

    # Only judged once the fixer has a measured response time
    if (
        badge.max_response_minutes is not None
        and profile.average_response_minutes is not None
        and profile.average_response_minutes > badge.max_response_minutes
    ):
        reasons.append(
            f"Response time too slow ({profile.average_response_minutes} min, "
            f"need <{badge.max_response_minutes} min)"
        )

    orders = await db.execute(
        select(
            func.count(Order.id),
            func.sum(case((Order.status == OrderStatus.CANCELLED, 1), else_=0)),
        )
        .where(Order.fixer_id == fixer_id)
        .where(
            Order.status.in_(
                [OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.DISPUTED]
            )
        )
    )
    total_orders, cancelled = orders.one()
    cancellation_rate = (cancelled or 0) / total_orders if total_orders else 0.0
    if badge.max_cancellation_rate is not None and cancellation_rate > badge.max_cancellation_rate:
        reasons.append(
            f"Cancellation rate too high ({cancellation_rate * 100:.1f}%, "
            f"need <{badge.max_cancellation_rate * 100:.0f}%)"
        )

    return QualityEligibility(eligible=not reasons, reasons=reasons)


# ── Tier maintenance ─────────────────────────────────────────────────

async def update_fixer_badge_tier(
    db: AsyncSession,
    fixer_id: int,
    now: Optional[datetime] = None,
    top_performers: Optional[set[int]] = None,
) -> Optional[BadgeTier]:
    """Recompute and store a fixer's tier."""
    now = now or utcnow()
    tier = await calculate_badge_tier(db, fixer_id, now, top_performers)
    async with atomic(db):
        await db.execute(
            update(User)
            .where(User.id == fixer_id)
            .values(badge_tier=tier, last_tier_update=now)
            .execution_options(synchronize_session=False)
        )
    logger.info(f"Fixer {fixer_id} badge tier is now {tier.value if tier else None}")
    return tier


async def get_fixer_active_badges(
    db: AsyncSession,
    fixer_id: int,
    now: Optional[datetime] = None,
) -> list[BadgeAssignment]:
    now = now or utcnow()
    res = await db.execute(
        select(BadgeAssignment)
        .options(selectinload(BadgeAssignment.badge))
        .where(BadgeAssignment.fixer_id == fixer_id)
        .where(*_active_assignment_filter(now))
        .order_by(BadgeAssignment.assigned_at.desc())
    )
    return list(res.scalars().all())


def is_expiring_soon(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when a badge has between 1 and 30 whole days left."""
    if not expires_at:
        return False
    now = as_utc(now or utcnow())
    days_left = math.floor((as_utc(expires_at) - now) / timedelta(days=1))
    return 0 < days_left <= EXPIRING_SOON_DAYS


async def expire_lapsed_badges(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> list[int]:
    """
    Mark ACTIVE assignments past their expiry as EXPIRED and refresh the
    tiers of the affected fixers. Returns those fixer ids.
    """
    now = now or utcnow()
    lapsed = (
        BadgeAssignment.status == BadgeAssignmentStatus.ACTIVE,
        BadgeAssignment.expires_at.is_not(None),
        BadgeAssignment.expires_at <= now,
    )

    res = await db.execute(select(BadgeAssignment.fixer_id).where(*lapsed).distinct())
    fixer_ids = sorted(res.scalars().all())
    if not fixer_ids:
        return []

    async with atomic(db):
        await db.execute(
            update(BadgeAssignment)
            .where(*lapsed)
            .values(status=BadgeAssignmentStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )

    logger.info(f"Expired lapsed badges for {len(fixer_ids)} fixers")
    await refresh_badge_tiers(db, fixer_ids, now)
    return fixer_ids


async def refresh_badge_tiers(
    db: AsyncSession,
    fixer_ids: Iterable[int],
    now: Optional[datetime] = None,
) -> None:
    """Recompute the tiers of `fixer_ids` against a single ranking."""
    fixer_ids = list(fixer_ids)
    if not fixer_ids:
        return
    now = now or utcnow()
    top_performers = await load_top_performers(db, now)
    for fixer_id in fixer_ids:
        await update_fixer_badge_tier(db, fixer_id, now, top_performers)


def get_badge_display_name(badge_name: str, tier: Optional[BadgeTier]) -> str:
    if not tier:
        return badge_name
    return TIER_LABELS[tier]


def get_tier_color(tier: Optional[BadgeTier]) -> str:
    if not tier:
        return NO_TIER_COLOR
    return TIER_COLORS[tier]
