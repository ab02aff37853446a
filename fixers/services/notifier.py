"""
Outbound notifications.

Services hand events to a Notifier only after their transaction has
committed. Delivery is best-effort: `notify_safely` logs and swallows any
failure so a lost email never undoes a wallet credit or a state change.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Iterable, Optional

from fixers.db import Database
from fixers.models import Notification

logger = logging.getLogger(__name__)


class NotificationEvent(str, Enum):
    """Everything the core tells users about."""
    COMMISSION_EARNED = "AGENT_COMMISSION_EARNED"
    BONUS_PAID = "AGENT_BONUS_PAID"
    WITHDRAWAL_PROCESSED = "AGENT_WITHDRAWAL_PROCESSED"
    FIXER_REGISTERED = "AGENT_FIXER_REGISTERED"
    FIXER_NEEDS_VETTING = "AGENT_FIXER_NEEDS_VETTING"
    VETTING_APPROVED = "AGENT_FIXER_APPROVED"
    VETTING_REJECTED = "AGENT_FIXER_REJECTED"
    BADGE_PAYMENT_CONFIRMED = "BADGE_PAYMENT_CONFIRMED"
    BADGE_PAYMENT_RECEIVED = "BADGE_PAYMENT_RECEIVED"
    BADGE_PAYMENT_FAILED = "BADGE_PAYMENT_FAILED"
    BADGE_REQUEST_EXPIRED = "BADGE_REQUEST_EXPIRED"
    BADGE_PAYMENT_REFUNDED = "BADGE_PAYMENT_REFUNDED"
    BADGE_PAYMENT_CANCELLED = "BADGE_PAYMENT_CANCELLED"
    BADGE_APPROVED = "BADGE_APPROVED"
    BADGE_REJECTED = "BADGE_REJECTED"


# event -> (title, message template, link template)
TEMPLATES: dict[NotificationEvent, tuple[str, str, Optional[str]]] = {
    NotificationEvent.COMMISSION_EARNED: (
        "Commission Earned",
        "You earned ₦{amount} commission on order #{order_id}.",
        "/agent/earnings",
    ),
    NotificationEvent.BONUS_PAID: (
        "Fixer Registration Bonus Earned",
        "You earned ₦{amount} bonus for your fixer completing their first order!",
        "/agent/earnings",
    ),
    NotificationEvent.WITHDRAWAL_PROCESSED: (
        "Withdrawal Processed",
        "₦{amount} has been withdrawn from your wallet.",
        "/agent/earnings",
    ),
    NotificationEvent.FIXER_REGISTERED: (
        "Agent Added You",
        "You are now managed by an agent who can create gigs and submit quotes on your behalf.",
        "/fixer/agents",
    ),
    NotificationEvent.FIXER_NEEDS_VETTING: (
        "Fixer Ready for Admin Review",
        "Agent #{agent_id} has submitted fixer #{fixer_id} for vetting approval.",
        "/admin/agents/{agent_id}/fixers/{fixer_id}/vet",
    ),
    NotificationEvent.VETTING_APPROVED: (
        "Fixer Vetting Approved",
        "Fixer #{fixer_id} has been approved for your management.",
        "/agent/fixers/{fixer_id}",
    ),
    NotificationEvent.VETTING_REJECTED: (
        "Fixer Vetting Rejected",
        "Fixer #{fixer_id} was not approved: {reason}",
        "/agent/fixers/{fixer_id}",
    ),
    NotificationEvent.BADGE_PAYMENT_CONFIRMED: (
        "Badge Payment Confirmed",
        "We received ₦{amount} for the {badge_name} badge. Your request is now awaiting review.",
        "/fixer/badges/requests/{request_id}",
    ),
    NotificationEvent.BADGE_PAYMENT_RECEIVED: (
        "Badge Payment Received",
        "Payment received for the {badge_name} badge. Request #{request_id} is ready for review.",
        "/admin/badges/requests/{request_id}",
    ),
    NotificationEvent.BADGE_PAYMENT_FAILED: (
        "Badge Payment Failed",
        "Your payment for the {badge_name} badge failed ({error}). Attempt {attempts} of {max_attempts}.",
        "/fixer/badges/payment/{request_id}",
    ),
    NotificationEvent.BADGE_REQUEST_EXPIRED: (
        "Badge Request Expired",
        "Your {badge_name} badge request expired after {attempts} failed payment attempts.",
        "/fixer/badges",
    ),
    NotificationEvent.BADGE_PAYMENT_REFUNDED: (
        "Badge Payment Refunded",
        "Your payment of ₦{amount} for the {badge_name} badge has been refunded.",
        "/fixer/badges",
    ),
    NotificationEvent.BADGE_PAYMENT_CANCELLED: (
        "Badge Payment Cancelled",
        "Your badge payment was cancelled. You can retry the payment from your badge requests page.",
        "/fixer/badges",
    ),
    NotificationEvent.BADGE_APPROVED: (
        "Badge Approved",
        "Your {badge_name} badge has been approved. Your tier is now {tier}.",
        "/fixer/badges",
    ),
    NotificationEvent.BADGE_REJECTED: (
        "Badge Request Rejected",
        "Your {badge_name} badge request was rejected: {reason}",
        "/fixer/badges",
    ),
}


class Notifier(ABC):
    """Delivery channel for notification events."""

    @abstractmethod
    async def send(
        self,
        event: NotificationEvent,
        recipient_id: int,
        payload: dict[str, Any],
    ) -> None:
        """Deliver one event to one user."""


class LoggingNotifier(Notifier):
    """Writes events to the log only. Used in development."""

    async def send(self, event, recipient_id, payload):
        logger.info(f"Notification {event.value} -> user {recipient_id}: {payload}")


class DatabaseNotifier(Notifier):
    """
    Stores in-app notifications.

    Uses its own session so it can run after the caller's transaction
    has committed.
    """

    def __init__(self, database: Database):
        self.database = database

    async def send(self, event, recipient_id, payload):
        title, message, link = TEMPLATES[event]
        async with self.database.session() as db:
            db.add(
                Notification(
                    user_id=recipient_id,
                    type=event.value,
                    title=title,
                    message=message.format(**payload),
                    link=link.format(**payload) if link else None,
                )
            )


async def notify_safely(
    notifier: Optional[Notifier],
    event: NotificationEvent,
    recipient_id: int,
    payload: Optional[dict[str, Any]] = None,
) -> None:
    """Send one notification; never raises."""
    if notifier is None:
        return
    try:
        await notifier.send(event, recipient_id, payload or {})
    except Exception as e:
        logger.error(f"Failed to send {event.value} to user {recipient_id}: {e}")


async def notify_many(
    notifier: Optional[Notifier],
    event: NotificationEvent,
    recipient_ids: Iterable[int],
    payload: Optional[dict[str, Any]] = None,
) -> None:
    for recipient_id in recipient_ids:
        await notify_safely(notifier, event, recipient_id, payload)
