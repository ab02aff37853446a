"""
Background job definitions using APScheduler.

Jobs include:
- Badge expiry sweep (expires lapsed assignments, refreshes tiers)
- Top tier refresh (PLATINUM depends on a ranking that moves over time)
"""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select

from fixers.config import settings
from fixers.db import Database
from fixers.models import BadgeTier, User, UserRole
from fixers.services.badges import expire_lapsed_badges, refresh_badge_tiers

logger = logging.getLogger(__name__)

TIER_REFRESH_HOURS = 24


async def badge_expiry_job(database: Database):
    """Expire lapsed badge assignments."""
    logger.debug("Running badge expiry job")
    try:
        async with database.session() as db:
            fixer_ids = await expire_lapsed_badges(db)
            if fixer_ids:
                logger.info(f"Badge expiry job: refreshed tiers of {len(fixer_ids)} fixers")
    except Exception as e:
        logger.error(f"Badge expiry job error: {e}")


async def top_tier_refresh_job(database: Database):
    """Re-rank GOLD and PLATINUM fixers against the current population."""
    logger.debug("Running top tier refresh job")
    try:
        async with database.session() as db:
            res = await db.execute(
                select(User.id)
                .where(User.role == UserRole.FIXER)
                .where(User.badge_tier.in_([BadgeTier.GOLD, BadgeTier.PLATINUM]))
            )
            fixer_ids = list(res.scalars().all())
            await refresh_badge_tiers(db, fixer_ids)
            logger.info(f"Top tier refresh job: re-ranked {len(fixer_ids)} fixers")
    except Exception as e:
        logger.error(f"Top tier refresh job error: {e}")


def create_scheduler(database: Database) -> AsyncIOScheduler:
    """
    Build the scheduler with all jobs bound to `database`.

    Called during application startup; the caller starts and stops it.
    """
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        badge_expiry_job,
        trigger=IntervalTrigger(minutes=settings.badge_expiry_sweep_minutes),
        args=[database],
        id="badge_expiry",
        name="Expire lapsed badges",
        replace_existing=True,
    )

    scheduler.add_job(
        top_tier_refresh_job,
        trigger=IntervalTrigger(hours=TIER_REFRESH_HOURS),
        args=[database],
        id="top_tier_refresh",
        name="Re-rank top tier fixers",
        replace_existing=True,
    )

    logger.info("Scheduler configured with jobs")
    return scheduler
