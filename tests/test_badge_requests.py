"""
Tests for admin review of badge requests.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from fixers.errors import FixersError, InvalidStateError, NotFoundError
from fixers.models import (
    BadgeAssignment,
    BadgeAssignmentStatus,
    BadgePaymentStatus,
    BadgeRequestStatus,
    BadgeTier,
)
from fixers.services.badge_requests import (
    add_months,
    approve_badge_request,
    mark_under_review,
    reject_badge_request,
)
from fixers.services.notifier import NotificationEvent
from factories import make_admin, make_badge, make_badge_request, make_fixer


async def _paid_request(db, expiry_months=12, **kwargs):
    fixer = await make_fixer(db)
    badge = await make_badge(db, name="Insurance", expiry_months=expiry_months)
    kwargs.setdefault("status", BadgeRequestStatus.PAYMENT_RECEIVED)
    kwargs.setdefault("payment_status", BadgePaymentStatus.PAID)
    request = await make_badge_request(db, fixer, badge, **kwargs)
    return fixer, badge, request


# ── add_months ───────────────────────────────────────────


class TestAddMonths:
    @pytest.mark.parametrize(
        "start, months, expected",
        [
            (datetime(2026, 1, 15), 12, datetime(2027, 1, 15)),
            (datetime(2026, 1, 31), 1, datetime(2026, 2, 28)),
            (datetime(2028, 1, 31), 1, datetime(2028, 2, 29)),
            (datetime(2026, 11, 30), 3, datetime(2027, 2, 28)),
            (datetime(2026, 5, 10), 0, datetime(2026, 5, 10)),
        ],
    )
    def test_add_months(self, start, months, expected):
        assert add_months(start, months) == expected

    def test_keeps_timezone(self):
        start = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)
        assert add_months(start, 6) == datetime(2026, 9, 1, 9, 30, tzinfo=timezone.utc)


# ── Approval ─────────────────────────────────────────────


class TestApproveBadgeRequest:
    @pytest.mark.asyncio
    async def test_grants_badge_and_tier(self, db_session, notifier):
        admin = await make_admin(db_session)
        fixer, badge, request = await _paid_request(db_session)

        approved = await approve_badge_request(
            db_session, request.id, admin.id, admin_notes="Policy checked", notifier=notifier
        )

        assert approved.status == BadgeRequestStatus.APPROVED
        assert approved.reviewed_by_id == admin.id
        assert approved.reviewed_at is not None
        assert approved.admin_notes == "Policy checked"

        res = await db_session.execute(
            select(BadgeAssignment).where(BadgeAssignment.fixer_id == fixer.id)
        )
        assignment = res.scalar_one()
        assert assignment.badge_id == badge.id
        assert assignment.request_id == request.id
        assert assignment.status == BadgeAssignmentStatus.ACTIVE
        assert assignment.expires_at is not None

        await db_session.refresh(fixer)
        assert fixer.badge_tier == BadgeTier.BRONZE

        assert notifier.sent == [
            (
                NotificationEvent.BADGE_APPROVED,
                fixer.id,
                {"badge_name": "Insurance", "tier": "BRONZE"},
            )
        ]

    @pytest.mark.asyncio
    async def test_badge_without_expiry(self, db_session):
        admin = await make_admin(db_session)
        fixer, _, request = await _paid_request(db_session, expiry_months=None)

        await approve_badge_request(db_session, request.id, admin.id)

        res = await db_session.execute(
            select(BadgeAssignment).where(BadgeAssignment.fixer_id == fixer.id)
        )
        assert res.scalar_one().expires_at is None

    @pytest.mark.asyncio
    async def test_from_under_review(self, db_session):
        admin = await make_admin(db_session)
        _, _, request = await _paid_request(db_session)

        reviewing = await mark_under_review(db_session, request.id, admin.id)
        assert reviewing.status == BadgeRequestStatus.UNDER_REVIEW

        approved = await approve_badge_request(db_session, request.id, admin.id)
        assert approved.status == BadgeRequestStatus.APPROVED

    @pytest.mark.asyncio
    async def test_unpaid_request_cannot_be_approved(self, db_session):
        admin = await make_admin(db_session)
        _, _, request = await _paid_request(
            db_session,
            status=BadgeRequestStatus.PENDING,
            payment_status=BadgePaymentStatus.PENDING,
        )

        with pytest.raises(InvalidStateError):
            await approve_badge_request(db_session, request.id, admin.id)

    @pytest.mark.asyncio
    async def test_refunded_request_cannot_be_approved(self, db_session):
        admin = await make_admin(db_session)
        _, _, request = await _paid_request(db_session, payment_status=BadgePaymentStatus.REFUNDED)

        with pytest.raises(InvalidStateError):
            await approve_badge_request(db_session, request.id, admin.id)

    @pytest.mark.asyncio
    async def test_approve_twice(self, db_session):
        admin = await make_admin(db_session)
        _, _, request = await _paid_request(db_session)
        await approve_badge_request(db_session, request.id, admin.id)

        with pytest.raises(InvalidStateError):
            await approve_badge_request(db_session, request.id, admin.id)

    @pytest.mark.asyncio
    async def test_unknown_request(self, db_session):
        with pytest.raises(NotFoundError):
            await approve_badge_request(db_session, 999, 1)


# ── Rejection ────────────────────────────────────────────


class TestRejectBadgeRequest:
    @pytest.mark.asyncio
    async def test_reject_paid_request(self, db_session, notifier):
        admin = await make_admin(db_session)
        fixer, _, request = await _paid_request(db_session)

        rejected = await reject_badge_request(
            db_session, request.id, admin.id, "Certificate is illegible", notifier=notifier
        )

        assert rejected.status == BadgeRequestStatus.REJECTED
        assert rejected.rejection_reason == "Certificate is illegible"
        assert rejected.payment_status == BadgePaymentStatus.PAID
        assert notifier.sent == [
            (
                NotificationEvent.BADGE_REJECTED,
                fixer.id,
                {"badge_name": "Insurance", "reason": "Certificate is illegible"},
            )
        ]

    @pytest.mark.asyncio
    async def test_reject_unpaid_request(self, db_session):
        admin = await make_admin(db_session)
        _, _, request = await _paid_request(
            db_session,
            status=BadgeRequestStatus.PENDING,
            payment_status=BadgePaymentStatus.PENDING,
        )

        rejected = await reject_badge_request(db_session, request.id, admin.id, "Duplicate request")
        assert rejected.status == BadgeRequestStatus.REJECTED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [BadgeRequestStatus.APPROVED, BadgeRequestStatus.EXPIRED, BadgeRequestStatus.CANCELLED],
    )
    async def test_final_states_cannot_be_rejected(self, db_session, status):
        admin = await make_admin(db_session)
        _, _, request = await _paid_request(db_session, status=status)

        with pytest.raises(InvalidStateError):
            await reject_badge_request(db_session, request.id, admin.id, "Too late")

    @pytest.mark.asyncio
    async def test_reason_required(self, db_session):
        admin = await make_admin(db_session)
        _, _, request = await _paid_request(db_session)

        with pytest.raises(FixersError):
            await reject_badge_request(db_session, request.id, admin.id, " ")

    @pytest.mark.asyncio
    async def test_under_review_requires_received_payment(self, db_session):
        admin = await make_admin(db_session)
        _, _, request = await _paid_request(
            db_session,
            status=BadgeRequestStatus.PENDING,
            payment_status=BadgePaymentStatus.PENDING,
        )

        with pytest.raises(InvalidStateError):
            await mark_under_review(db_session, request.id, admin.id)
