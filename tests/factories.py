"""Row builders shared by the database tests."""

import hashlib
import hmac
import time
from datetime import datetime, timedelta
from decimal import Decimal
from itertools import count

from fixers.models import (
    Agent,
    AgentFixer,
    AgentStatus,
    Badge,
    BadgeAssignment,
    BadgeAssignmentStatus,
    BadgePaymentStatus,
    BadgeRequest,
    BadgeRequestStatus,
    BadgeType,
    FixerProfile,
    Order,
    OrderStatus,
    Review,
    User,
    UserRole,
    VetStatus,
)
from fixers.models.base import utcnow

_seq = count(1)


async def make_user(db, role=UserRole.CLIENT, created_at=None, **kwargs):
    n = next(_seq)
    user = User(
        email=kwargs.pop("email", f"user{n}@example.com"),
        name=kwargs.pop("name", f"User {n}"),
        role=role,
        **kwargs,
    )
    if created_at is not None:
        user.created_at = created_at
    db.add(user)
    await db.commit()
    return user


async def make_admin(db):
    return await make_user(db, role=UserRole.ADMIN)


async def make_fixer(
    db,
    jobs=0,
    response_minutes=None,
    tenure_days=0,
    now=None,
):
    """A FIXER user with a profile."""
    now = now or utcnow()
    fixer = await make_user(db, role=UserRole.FIXER, created_at=now - timedelta(days=tenure_days))
    db.add(
        FixerProfile(
            user_id=fixer.id,
            total_jobs_completed=jobs,
            average_response_minutes=response_minutes,
        )
    )
    await db.commit()
    return fixer


async def make_agent(
    db,
    commission_percentage=Decimal("10.00"),
    wallet_balance=Decimal("0"),
    status=AgentStatus.ACTIVE,
    **kwargs,
):
    """An agent with wallet_balance already earned (so the wallet invariant holds)."""
    user = await make_user(db, role=UserRole.AGENT)
    agent = Agent(
        user_id=user.id,
        status=status,
        commission_percentage=commission_percentage,
        wallet_balance=wallet_balance,
        total_earned=wallet_balance,
        total_withdrawn=Decimal("0"),
        **kwargs,
    )
    db.add(agent)
    await db.commit()
    return agent


async def make_relationship(db, agent, fixer, vet_status=VetStatus.PENDING, **kwargs):
    kwargs.setdefault("registered_at", utcnow())
    relationship = AgentFixer(
        agent_id=agent.id,
        fixer_id=fixer.id,
        vet_status=vet_status,
        **kwargs,
    )
    db.add(relationship)
    await db.commit()
    return relationship


async def make_order(db, fixer, total_amount=Decimal("10000.00"), status=OrderStatus.COMPLETED):
    order = Order(fixer_id=fixer.id, total_amount=total_amount, status=status)
    db.add(order)
    await db.commit()
    return order


async def make_review(db, fixer, rating, is_visible=True):
    review = Review(fixer_id=fixer.id, rating=rating, is_visible=is_visible)
    db.add(review)
    await db.commit()
    return review


async def make_badge(db, type=BadgeType.IDENTITY_VERIFICATION, expiry_months=12, **kwargs):
    badge = Badge(
        name=kwargs.pop("name", f"{type.value.title()} Badge"),
        type=type,
        price=kwargs.pop("price", Decimal("5000.00")),
        expiry_months=expiry_months,
        **kwargs,
    )
    db.add(badge)
    await db.commit()
    return badge


async def assign_badge(db, fixer, badge, expires_at=None, status=BadgeAssignmentStatus.ACTIVE):
    assignment = BadgeAssignment(
        fixer_id=fixer.id,
        badge_id=badge.id,
        status=status,
        assigned_at=utcnow(),
        expires_at=expires_at,
    )
    db.add(assignment)
    await db.commit()
    return assignment


async def make_badge_request(
    db,
    fixer,
    badge,
    payment_ref="pi_test_1",
    status=BadgeRequestStatus.PENDING,
    payment_status=BadgePaymentStatus.PENDING,
    **kwargs,
):
    request = BadgeRequest(
        fixer_id=fixer.id,
        badge_id=badge.id,
        payment_ref=payment_ref,
        status=status,
        payment_status=payment_status,
        payment_amount=kwargs.pop("payment_amount", badge.price),
        **kwargs,
    )
    db.add(request)
    await db.commit()
    return request


def stripe_event(event_type, object_id="pi_test_1", event_id=None, **data):
    """Parsed Stripe event of the shape handle_stripe_event consumes."""
    obj = {"id": object_id, **data}
    return {
        "id": event_id or f"evt_{next(_seq)}",
        "type": event_type,
        "data": {"object": obj},
    }


def days_from_now(days, now=None) -> datetime:
    return (now or utcnow()) + timedelta(days=days)


def sign_stripe_payload(payload, secret, timestamp=None):
    """A stripe-signature header value for `payload`, as Stripe computes it."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"
