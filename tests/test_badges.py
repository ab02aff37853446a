"""
Tests for badge tiers, performance ranking and badge expiry.
"""

from datetime import datetime, timedelta, timezone

import pytest

from fixers.models import (
    BadgeAssignmentStatus,
    BadgeTier,
    BadgeType,
    FixerProfile,
    OrderStatus,
    User,
    UserRole,
)
from fixers.models.base import utcnow
from fixers.services import badges as badges_service
from fixers.services.badges import (
    NO_TIER_COLOR,
    PerformanceSnapshot,
    calculate_badge_tier,
    calculate_badge_tier_from_count,
    check_quality_performance_criteria,
    check_top_performer_status,
    compute_performance_score,
    count_active_badges,
    expire_lapsed_badges,
    get_badge_display_name,
    get_fixer_active_badges,
    get_tier_color,
    is_expiring_soon,
    load_top_performers,
    rank_fixers,
    refresh_badge_tiers,
    top_performer_cutoff,
    update_fixer_badge_tier,
)
from factories import (
    assign_badge,
    days_from_now,
    make_badge,
    make_fixer,
    make_order,
    make_review,
    make_user,
)


async def _fixer_population(db, size, now):
    """`size` fixers whose scores strictly increase with their index."""
    users = [
        User(email=f"pop{i}@example.com", role=UserRole.FIXER, created_at=now)
        for i in range(size)
    ]
    db.add_all(users)
    await db.flush()
    # Response time alone separates them: index i answers in 240 - i minutes
    db.add_all(
        FixerProfile(user_id=user.id, total_jobs_completed=0, average_response_minutes=240 - i)
        for i, user in enumerate(users)
    )
    await db.commit()
    return users


async def _give_badges(db, fixer, n):
    for _ in range(n):
        await assign_badge(db, fixer, await make_badge(db))


# ── Tier from count ──────────────────────────────────────


class TestTierFromCount:
    @pytest.mark.parametrize(
        "count, tier",
        [
            (0, None),
            (1, BadgeTier.BRONZE),
            (2, BadgeTier.BRONZE),
            (3, BadgeTier.SILVER),
            (4, BadgeTier.SILVER),
            (5, BadgeTier.GOLD),
            (12, BadgeTier.GOLD),
        ],
    )
    def test_thresholds(self, count, tier):
        assert calculate_badge_tier_from_count(count) == tier

    @pytest.mark.asyncio
    async def test_only_active_unexpired_badges_count(self, db_session):
        fixer = await make_fixer(db_session)
        badge = await make_badge(db_session)

        await assign_badge(db_session, fixer, badge)                                # never expires
        await assign_badge(db_session, fixer, badge, expires_at=days_from_now(30))  # still valid
        await assign_badge(db_session, fixer, badge, expires_at=days_from_now(-1))  # lapsed
        await assign_badge(db_session, fixer, badge, status=BadgeAssignmentStatus.REVOKED)
        await assign_badge(db_session, fixer, badge, status=BadgeAssignmentStatus.EXPIRED)

        assert await count_active_badges(db_session, fixer.id) == 2
        assert await calculate_badge_tier(db_session, fixer.id) == BadgeTier.BRONZE
        assert len(await get_fixer_active_badges(db_session, fixer.id)) == 2

    @pytest.mark.asyncio
    async def test_no_badges_no_tier(self, db_session):
        fixer = await make_fixer(db_session)
        assert await calculate_badge_tier(db_session, fixer.id) is None


# ── Performance score ────────────────────────────────────


class TestPerformanceScore:
    def test_perfect_fixer(self):
        snapshot = PerformanceSnapshot(
            fixer_id=1,
            jobs_completed=100,
            average_rating=5.0,
            average_response_minutes=0,
            satisfied_reviews=10,
            total_reviews=10,
            tenure_days=365,
        )
        assert compute_performance_score(snapshot) == pytest.approx(1.0)

    def test_blank_fixer(self):
        assert compute_performance_score(PerformanceSnapshot(fixer_id=1)) == pytest.approx(0.0)

    def test_jobs_are_capped(self):
        hundred = PerformanceSnapshot(fixer_id=1, jobs_completed=100)
        thousand = PerformanceSnapshot(fixer_id=2, jobs_completed=1000)
        assert compute_performance_score(hundred) == compute_performance_score(thousand)
        assert compute_performance_score(hundred) == pytest.approx(0.30)

    def test_unknown_response_time_earns_nothing(self):
        unknown = PerformanceSnapshot(fixer_id=1, average_response_minutes=None)
        slow = PerformanceSnapshot(fixer_id=2, average_response_minutes=600)
        instant = PerformanceSnapshot(fixer_id=3, average_response_minutes=0)
        assert compute_performance_score(unknown) == pytest.approx(0.0)
        assert compute_performance_score(slow) == pytest.approx(0.0)
        assert compute_performance_score(instant) == pytest.approx(0.20)

    def test_components(self):
        snapshot = PerformanceSnapshot(
            fixer_id=1,
            jobs_completed=50,
            average_rating=4.0,
            average_response_minutes=60,
            satisfied_reviews=3,
            total_reviews=4,
            tenure_days=730,
        )
        expected = 0.30 * 0.5 + 0.25 * 0.8 + 0.20 * 0.75 + 0.15 * 0.75 + 0.10 * 1.0
        assert compute_performance_score(snapshot) == pytest.approx(expected)

    def test_ranking_breaks_ties_by_id(self):
        assert rank_fixers({7: 0.5, 3: 0.5, 9: 0.9, 1: 0.1}) == [9, 3, 7, 1]

    @pytest.mark.parametrize(
        "population, cutoff",
        [(1, 1), (20, 1), (21, 2), (200, 10), (1000, 50)],
    )
    def test_top_performer_cutoff(self, population, cutoff):
        assert top_performer_cutoff(population, 0.05) == cutoff


# ── Top performers and PLATINUM ──────────────────────────


class TestTopPerformers:
    @pytest.mark.asyncio
    async def test_platinum_needs_gold_and_top_rank(self, db_session):
        now = utcnow()
        fixers = await _fixer_population(db_session, 200, now)

        # Rank r (0 = best) is fixer index 199 - r; 5% of 200 is 10
        top = fixers[199 - 5]       # top 3%
        good = fixers[199 - 39]     # top 20%
        best_no_badges = fixers[199]

        await _give_badges(db_session, top, 5)
        await _give_badges(db_session, good, 5)
        await _give_badges(db_session, best_no_badges, 1)

        assert await check_top_performer_status(db_session, top.id, now) is True
        assert await check_top_performer_status(db_session, good.id, now) is False

        assert await calculate_badge_tier(db_session, top.id, now) == BadgeTier.PLATINUM
        assert await calculate_badge_tier(db_session, good.id, now) == BadgeTier.GOLD
        assert await calculate_badge_tier(db_session, best_no_badges.id, now) == BadgeTier.BRONZE

    @pytest.mark.asyncio
    async def test_cutoff_boundary(self, db_session):
        now = utcnow()
        fixers = await _fixer_population(db_session, 200, now)

        assert await check_top_performer_status(db_session, fixers[199 - 9].id, now) is True
        assert await check_top_performer_status(db_session, fixers[199 - 10].id, now) is False

    @pytest.mark.asyncio
    async def test_fraction_override(self, db_session):
        now = utcnow()
        fixers = await _fixer_population(db_session, 200, now)
        assert await check_top_performer_status(
            db_session, fixers[199 - 39].id, now, fraction=0.25
        ) is True

    @pytest.mark.asyncio
    async def test_reviews_feed_the_score(self, db_session):
        now = utcnow()
        rated = await make_fixer(db_session, response_minutes=120, now=now)
        unrated = await make_fixer(db_session, response_minutes=120, now=now)
        for rating in (5, 5, 4):
            await make_review(db_session, rated, rating)
        await make_review(db_session, unrated, 5, is_visible=False)

        # Two fixers, cutoff 1: the reviewed one wins despite the higher id
        assert await check_top_performer_status(db_session, rated.id, now) is True
        assert await check_top_performer_status(db_session, unrated.id, now) is False

    @pytest.mark.asyncio
    async def test_fixer_without_profile_is_never_top(self, db_session):
        user = await make_user(db_session, role=UserRole.FIXER)
        assert await check_top_performer_status(db_session, user.id) is False

    @pytest.mark.asyncio
    async def test_load_top_performers(self, db_session):
        now = utcnow()
        fixers = await _fixer_population(db_session, 200, now)

        top = await load_top_performers(db_session, now)

        assert top == {fixer.id for fixer in fixers[190:]}

    @pytest.mark.asyncio
    async def test_refresh_ranks_population_once(self, db_session, monkeypatch):
        now = utcnow()
        fixers = await _fixer_population(db_session, 40, now)
        gold = [fixers[39], fixers[38], fixers[10], fixers[0]]
        for fixer in gold:
            await _give_badges(db_session, fixer, 5)

        loads = []
        original_load = badges_service.load_performance_snapshots

        async def counting_load(db, now=None):
            loads.append(now)
            return await original_load(db, now)

        monkeypatch.setattr(badges_service, "load_performance_snapshots", counting_load)

        await refresh_badge_tiers(db_session, [fixer.id for fixer in gold], now)

        assert len(loads) == 1
        tiers = []
        for fixer in gold:
            await db_session.refresh(fixer)
            tiers.append(fixer.badge_tier)
        # 5% of 40 is 2: only the two best-ranked reach PLATINUM
        assert tiers == [BadgeTier.PLATINUM, BadgeTier.PLATINUM, BadgeTier.GOLD, BadgeTier.GOLD]

    @pytest.mark.asyncio
    async def test_refresh_nothing(self, db_session, monkeypatch):
        async def fail_load(db, now=None):
            raise AssertionError("ranking loaded for an empty refresh")

        monkeypatch.setattr(badges_service, "load_performance_snapshots", fail_load)
        await refresh_badge_tiers(db_session, [])


# ── Quality performance badge ────────────────────────────


class TestQualityCriteria:
    async def _quality_badge(self, db):
        return await make_badge(
            db,
            type=BadgeType.QUALITY_PERFORMANCE,
            min_jobs_required=10,
            min_average_rating=4.0,
            max_response_minutes=60,
            max_cancellation_rate=0.1,
        )

    @pytest.mark.asyncio
    async def test_eligible(self, db_session):
        await self._quality_badge(db_session)
        fixer = await make_fixer(db_session, jobs=25, response_minutes=30)
        await make_review(db_session, fixer, 5)
        await make_review(db_session, fixer, 4)
        await make_order(db_session, fixer)

        result = await check_quality_performance_criteria(db_session, fixer.id)

        assert result.eligible is True
        assert result.reasons == []

    @pytest.mark.asyncio
    async def test_every_failing_threshold_is_reported(self, db_session):
        badge = await self._quality_badge(db_session)
        fixer = await make_fixer(db_session, jobs=5, response_minutes=90)
        await make_review(db_session, fixer, 3)
        await make_order(db_session, fixer, status=OrderStatus.COMPLETED)
        await make_order(db_session, fixer, status=OrderStatus.CANCELLED)

        result = await check_quality_performance_criteria(db_session, fixer.id, badge.id)

        assert result.eligible is False
        assert result.reasons == [
            "Need 10 completed jobs (have 5)",
            "Need 4.0+ star rating (have 3.0)",
            "Response time too slow (90 min, need <60 min)",
            "Cancellation rate too high (50.0%, need <10%)",
        ]

    @pytest.mark.asyncio
    async def test_unmeasured_response_time_is_not_judged(self, db_session):
        await self._quality_badge(db_session)
        fixer = await make_fixer(db_session, jobs=25, response_minutes=None)
        await make_review(db_session, fixer, 5)

        result = await check_quality_performance_criteria(db_session, fixer.id)
        assert result.eligible is True

    @pytest.mark.asyncio
    async def test_unconfigured_thresholds_are_skipped(self, db_session):
        await make_badge(db_session, type=BadgeType.QUALITY_PERFORMANCE)
        fixer = await make_fixer(db_session)

        result = await check_quality_performance_criteria(db_session, fixer.id)
        assert result.eligible is True

    @pytest.mark.asyncio
    async def test_missing_badge(self, db_session):
        fixer = await make_fixer(db_session)
        result = await check_quality_performance_criteria(db_session, fixer.id)
        assert result.eligible is False
        assert result.reasons == ["Quality badge not configured"]

    @pytest.mark.asyncio
    async def test_missing_profile(self, db_session):
        result = await check_quality_performance_criteria(db_session, 999)
        assert result.eligible is False
        assert result.reasons == ["Fixer profile not found"]


# ── Expiry and tier maintenance ──────────────────────────


class TestExpiry:
    def test_is_expiring_soon(self):
        now = datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert is_expiring_soon(now + timedelta(days=10), now) is True
        assert is_expiring_soon(now + timedelta(days=30, hours=1), now) is True
        assert is_expiring_soon(now + timedelta(days=45), now) is False
        assert is_expiring_soon(now - timedelta(days=1), now) is False
        assert is_expiring_soon(now + timedelta(hours=12), now) is False
        assert is_expiring_soon(None, now) is False

    def test_naive_expiry_is_treated_as_utc(self):
        now = datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert is_expiring_soon(datetime(2026, 10, 11), now) is True

    @pytest.mark.asyncio
    async def test_update_fixer_badge_tier(self, db_session):
        fixer = await make_fixer(db_session)
        await _give_badges(db_session, fixer, 3)

        tier = await update_fixer_badge_tier(db_session, fixer.id)

        assert tier == BadgeTier.SILVER
        await db_session.refresh(fixer)
        assert fixer.badge_tier == BadgeTier.SILVER
        assert fixer.last_tier_update is not None

    @pytest.mark.asyncio
    async def test_expire_lapsed_badges(self, db_session):
        fixer = await make_fixer(db_session)
        untouched = await make_fixer(db_session)
        badge = await make_badge(db_session)
        lapsed = await assign_badge(db_session, fixer, badge, expires_at=days_from_now(-2))
        await assign_badge(db_session, untouched, badge, expires_at=days_from_now(60))
        fixer.badge_tier = BadgeTier.BRONZE
        await db_session.commit()

        expired_for = await expire_lapsed_badges(db_session)

        assert expired_for == [fixer.id]
        await db_session.refresh(lapsed)
        await db_session.refresh(fixer)
        assert lapsed.status == BadgeAssignmentStatus.EXPIRED
        assert fixer.badge_tier is None

    @pytest.mark.asyncio
    async def test_expire_nothing(self, db_session):
        assert await expire_lapsed_badges(db_session) == []


# ── Display helpers ──────────────────────────────────────


class TestDisplay:
    def test_display_name(self):
        assert get_badge_display_name("ID Check", None) == "ID Check"
        assert get_badge_display_name("ID Check", BadgeTier.BRONZE) == "Verified"
        assert get_badge_display_name("ID Check", BadgeTier.PLATINUM) == "Elite Professional"

    def test_tier_color(self):
        assert get_tier_color(BadgeTier.GOLD) == "#FFD700"
        assert get_tier_color(None) == NO_TIER_COLOR
