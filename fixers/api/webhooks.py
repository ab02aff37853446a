"""
Payment provider webhooks.

Stripe retries any non-2xx answer, so once a payload is verified the
endpoint always answers 200 and reports what happened in the body.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.api.deps import get_notifier
from fixers.config import settings
from fixers.db import get_db
from fixers.schemas.badge import WebhookResponse
from fixers.services.notifier import Notifier
from fixers.services.payment_webhooks import handle_stripe_event, verify_stripe_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/stripe", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
    notifier: Optional[Notifier] = Depends(get_notifier),
):
    """Badge payment events. 400 on a bad signature, 200 otherwise."""
    payload = await request.body()

    # SignatureInvalidError propagates to the 400 handler
    event = verify_stripe_event(
        payload,
        stripe_signature,
        settings.stripe_webhook_secret,
        settings.stripe_webhook_tolerance_seconds,
    )

    try:
        result = await handle_stripe_event(
            db,
            event,
            notifier=notifier,
            max_failed_attempts=settings.max_failed_payment_attempts,
        )
    except Exception as e:
        logger.exception(f"Error handling Stripe event {event['id']} ({event['type']}): {e}")
        await db.rollback()
        return WebhookResponse(event_type=event["type"], outcome="ERROR")

    return WebhookResponse(
        event_type=result.event_type,
        outcome=result.outcome.value,
        badge_request_id=result.badge_request_id,
    )
