"""
Stripe webhook handling for badge request payments.

Event flow:
- payment_intent.succeeded -> payment PAID, request PAYMENT_RECEIVED
- payment_intent.payment_failed -> failure counter +1, EXPIRED at the limit
- charge.refunded -> payment REFUNDED (request status untouched)
- payment_intent.canceled -> request and payment CANCELLED

Each Stripe event id is stored with the change it caused, so a redelivered
event is recognised and ignored. Notifications go out after the commit.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

import stripe
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.config import settings
from fixers.crud.badge_requests import (
    get_by_payment_ref,
    is_event_processed,
    record_event,
    transition,
)
from fixers.crud.users import get_admin_ids
from fixers.db import atomic
from fixers.errors import SignatureInvalidError
from fixers.models import BadgePaymentStatus, BadgeRequest, BadgeRequestStatus
from fixers.models.base import utcnow
from fixers.services.notifier import (
    NotificationEvent,
    Notifier,
    notify_many,
    notify_safely,
)

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_REFUNDED = "charge.refunded"
PAYMENT_CANCELED = "payment_intent.canceled"

EXPIRED_REASON = "Maximum payment attempts exceeded"
CANCELLED_REASON = "Payment cancelled by user"


class WebhookOutcome(str, Enum):
    """What a verified event did."""
    APPLIED = "APPLIED"
    DUPLICATE_EVENT = "DUPLICATE_EVENT"
    UNKNOWN_REFERENCE = "UNKNOWN_REFERENCE"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    UNHANDLED_EVENT = "UNHANDLED_EVENT"


@dataclass(frozen=True)
class WebhookResult:
    event_type: str
    outcome: WebhookOutcome
    badge_request_id: Optional[int] = None


def verify_stripe_event(
    payload: Union[bytes, str],
    signature: Optional[str],
    secret: Optional[str] = None,
    tolerance: Optional[int] = None,
) -> dict[str, Any]:
    """
    Check the stripe-signature header against the raw body and parse it.

    The event comes back as plain JSON data rather than a stripe.Event, so
    handlers read it the same way whatever the SDK version.

    Raises:
        SignatureInvalidError: Missing header, bad signature, stale
            timestamp or a body that is not JSON
    """
    secret = secret if secret is not None else settings.stripe_webhook_secret
    tolerance = tolerance if tolerance is not None else settings.stripe_webhook_tolerance_seconds

    if not signature:
        raise SignatureInvalidError("Missing stripe-signature header")
    if not secret:
        raise SignatureInvalidError("Webhook secret is not configured")

    if isinstance(payload, bytes):
        payload = payload.decode("utf-8")

    try:
        stripe.WebhookSignature.verify_header(payload, signature, secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise SignatureInvalidError("Invalid signature")

    try:
        event = json.loads(payload)
    except ValueError as e:
        logger.warning(f"Webhook payload is not valid JSON: {e}")
        raise SignatureInvalidError("Invalid payload")
    if not isinstance(event, dict):
        raise SignatureInvalidError("Invalid payload")
    return event


@dataclass
class _Context:
    db: AsyncSession
    event_id: str
    event_type: str
    data: Any
    badge_request: BadgeRequest
    notifier: Optional[Notifier]
    max_failed_attempts: int


def _payment_ref(event_type: str, data: Any) -> Optional[str]:
    if event_type == CHARGE_REFUNDED:
        return data.get("payment_intent")
    return data.get("id")


async def _apply(ctx: _Context, **transition_args: Any) -> bool:
    """Guarded transition plus event bookkeeping, committed together."""
    async with atomic(ctx.db):
        applied = await transition(ctx.db, ctx.badge_request.id, **transition_args)
        record_event(ctx.db, ctx.event_id, ctx.event_type, ctx.badge_request.id)
    return applied


async def _handle_succeeded(ctx: _Context) -> WebhookOutcome:
    request = ctx.badge_request
    applied = await _apply(
        ctx,
        from_payment_statuses=[BadgePaymentStatus.PENDING],
        payment_status=BadgePaymentStatus.PAID,
        status=BadgeRequestStatus.PAYMENT_RECEIVED,
        paid_at=utcnow(),
    )
    if not applied:
        logger.info(f"Badge request {request.id} is not awaiting payment; success ignored")
        return WebhookOutcome.NOT_APPLICABLE

    logger.info(f"Payment received for badge request {request.id}")

    payload = {
        "amount": request.payment_amount,
        "badge_name": request.badge.name,
        "request_id": request.id,
    }
    await notify_safely(
        ctx.notifier, NotificationEvent.BADGE_PAYMENT_CONFIRMED, request.fixer_id, payload
    )
    await notify_many(
        ctx.notifier,
        NotificationEvent.BADGE_PAYMENT_RECEIVED,
        await get_admin_ids(ctx.db),
        payload,
    )
    return WebhookOutcome.APPLIED


async def _handle_failed(ctx: _Context) -> WebhookOutcome:
    request = ctx.badge_request
    # Counted from the persisted value; the row is locked by the lookup
    attempts = request.failed_payment_attempts + 1
    now = utcnow().isoformat()

    metadata = dict(request.request_metadata or {})
    metadata["failedPaymentAttempts"] = attempts
    metadata["lastFailedAt"] = now

    values: dict[str, Any] = {}
    expired = attempts >= ctx.max_failed_attempts
    if expired:
        metadata["expiredAt"] = now
        metadata["expiredReason"] = EXPIRED_REASON
        values["status"] = BadgeRequestStatus.EXPIRED

    applied = await _apply(
        ctx,
        from_statuses=[BadgeRequestStatus.PENDING],
        from_payment_statuses=[BadgePaymentStatus.PENDING],
        request_metadata=metadata,
        **values,
    )
    if not applied:
        logger.info(f"Badge request {request.id} is not awaiting payment; failure ignored")
        return WebhookOutcome.NOT_APPLICABLE

    error = (ctx.data.get("last_payment_error") or {}).get("message") or "payment declined"
    logger.info(
        f"Payment failed for badge request {request.id}: {error} "
        f"(attempt {attempts}/{ctx.max_failed_attempts})"
    )

    if expired:
        logger.info(f"Badge request {request.id} expired after {attempts} failed payment attempts")
        await notify_safely(
            ctx.notifier,
            NotificationEvent.BADGE_REQUEST_EXPIRED,
            request.fixer_id,
            {"badge_name": request.badge.name, "attempts": attempts, "request_id": request.id},
        )
    else:
        await notify_safely(
            ctx.notifier,
            NotificationEvent.BADGE_PAYMENT_FAILED,
            request.fixer_id,
            {
                "badge_name": request.badge.name,
                "error": error,
                "attempts": attempts,
                "max_attempts": ctx.max_failed_attempts,
                "request_id": request.id,
            },
        )
    return WebhookOutcome.APPLIED


async def _handle_refunded(ctx: _Context) -> WebhookOutcome:
    request = ctx.badge_request
    applied = await _apply(
        ctx,
        from_payment_statuses=[BadgePaymentStatus.PAID],
        payment_status=BadgePaymentStatus.REFUNDED,
    )
    if not applied:
        logger.info(f"Badge request {request.id} has no settled payment; refund ignored")
        return WebhookOutcome.NOT_APPLICABLE

    logger.info(f"Refund processed for badge request {request.id}")
    await notify_safely(
        ctx.notifier,
        NotificationEvent.BADGE_PAYMENT_REFUNDED,
        request.fixer_id,
        {"amount": request.payment_amount, "badge_name": request.badge.name},
    )
    return WebhookOutcome.APPLIED


async def _handle_canceled(ctx: _Context) -> WebhookOutcome:
    request = ctx.badge_request
    metadata = dict(request.request_metadata or {})
    metadata["cancelledAt"] = utcnow().isoformat()
    metadata["cancelledReason"] = CANCELLED_REASON

    applied = await _apply(
        ctx,
        from_statuses=[BadgeRequestStatus.PENDING],
        from_payment_statuses=[BadgePaymentStatus.PENDING],
        status=BadgeRequestStatus.CANCELLED,
        payment_status=BadgePaymentStatus.CANCELLED,
        request_metadata=metadata,
    )
    if not applied:
        logger.info(f"Badge request {request.id} is past payment; cancellation ignored")
        return WebhookOutcome.NOT_APPLICABLE

    logger.info(f"Payment cancelled for badge request {request.id}")
    await notify_safely(
        ctx.notifier,
        NotificationEvent.BADGE_PAYMENT_CANCELLED,
        request.fixer_id,
        {"request_id": request.id},
    )
    return WebhookOutcome.APPLIED


_HANDLERS: dict[str, Callable[[_Context], Awaitable[WebhookOutcome]]] = {
    PAYMENT_SUCCEEDED: _handle_succeeded,
    PAYMENT_FAILED: _handle_failed,
    CHARGE_REFUNDED: _handle_refunded,
    PAYMENT_CANCELED: _handle_canceled,
}


async def handle_stripe_event(
    db: AsyncSession,
    event: Any,
    notifier: Optional[Notifier] = None,
    max_failed_attempts: Optional[int] = None,
) -> WebhookResult:
    """
    Apply a verified Stripe event to its badge request.

    `event` is the parsed event as returned by verify_stripe_event.
    Unknown event types and unknown payment references are reported, not
    raised, so the provider stops redelivering them.
    """
    if max_failed_attempts is None:
        max_failed_attempts = settings.max_failed_payment_attempts

    event_id = event["id"]
    event_type = event["type"]

    handler = _HANDLERS.get(event_type)
    if handler is None:
        logger.info(f"Unhandled Stripe event type: {event_type}")
        return WebhookResult(event_type, WebhookOutcome.UNHANDLED_EVENT)

    if await is_event_processed(db, event_id):
        logger.info(f"Stripe event {event_id} already processed")
        return WebhookResult(event_type, WebhookOutcome.DUPLICATE_EVENT)

    data = event["data"]["object"]
    payment_ref = _payment_ref(event_type, data)
    if not payment_ref:
        logger.error(f"Stripe event {event_id} ({event_type}) has no payment intent")
        return WebhookResult(event_type, WebhookOutcome.UNKNOWN_REFERENCE)

    badge_request = await get_by_payment_ref(db, payment_ref, for_update=True)
    if not badge_request:
        logger.error(f"Badge request not found for payment {payment_ref} ({event_type})")
        return WebhookResult(event_type, WebhookOutcome.UNKNOWN_REFERENCE)

    ctx = _Context(
        db=db,
        event_id=event_id,
        event_type=event_type,
        data=data,
        badge_request=badge_request,
        notifier=notifier,
        max_failed_attempts=max_failed_attempts,
    )
    try:
        outcome = await handler(ctx)
    except IntegrityError:
        # A concurrent delivery of the same event committed first
        logger.info(f"Stripe event {event_id} recorded concurrently")
        return WebhookResult(event_type, WebhookOutcome.DUPLICATE_EVENT, badge_request.id)

    return WebhookResult(event_type, outcome, badge_request.id)
