"""Business logic services."""

from fixers.services.badge_requests import approve_badge_request, reject_badge_request
from fixers.services.badges import calculate_badge_tier, check_top_performer_status
from fixers.services.bonuses import pay_fixer_bonus, should_pay_fixer_bonus
from fixers.services.commissions import (
    calculate_commission,
    mark_commissions_as_paid,
    record_commission,
)
from fixers.services.notifier import DatabaseNotifier, LoggingNotifier, Notifier
from fixers.services.payment_webhooks import handle_stripe_event, verify_stripe_event
from fixers.services.settlement import settle_completed_order
from fixers.services.vetting import approve_vetted_fixer, reject_vetted_fixer, requires_vetting

__all__ = [
    # Commissions
    "calculate_commission",
    "record_commission",
    "mark_commissions_as_paid",
    "pay_fixer_bonus",
    "should_pay_fixer_bonus",
    "settle_completed_order",
    # Vetting
    "approve_vetted_fixer",
    "reject_vetted_fixer",
    "requires_vetting",
    # Badges
    "calculate_badge_tier",
    "check_top_performer_status",
    "approve_badge_request",
    "reject_badge_request",
    # Payments
    "handle_stripe_event",
    "verify_stripe_event",
    # Notifications
    "Notifier",
    "DatabaseNotifier",
    "LoggingNotifier",
]
