"""
Badge request lookups and guarded transitions.
"""

from typing import Any, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fixers.models import (
    BadgePaymentStatus,
    BadgeRequest,
    BadgeRequestStatus,
    ProcessedWebhookEvent,
)


async def get_by_payment_ref(
    db: AsyncSession,
    payment_ref: str,
    for_update: bool = False,
) -> Optional[BadgeRequest]:
    stmt = (
        select(BadgeRequest)
        .options(
            selectinload(BadgeRequest.fixer),
            selectinload(BadgeRequest.badge),
        )
        .where(BadgeRequest.payment_ref == payment_ref)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def get_with_badge(db: AsyncSession, request_id: int) -> Optional[BadgeRequest]:
    res = await db.execute(
        select(BadgeRequest)
        .options(
            selectinload(BadgeRequest.fixer),
            selectinload(BadgeRequest.badge),
        )
        .where(BadgeRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def transition(
    db: AsyncSession,
    request_id: int,
    from_statuses: Optional[Iterable[BadgeRequestStatus]] = None,
    from_payment_statuses: Optional[Iterable[BadgePaymentStatus]] = None,
    **values: Any,
) -> bool:
    """
    Write `values` only if the row is still in one of the expected states.

    Returns whether the row was updated.
    """
    stmt = update(BadgeRequest).where(BadgeRequest.id == request_id)
    if from_statuses is not None:
        stmt = stmt.where(BadgeRequest.status.in_(list(from_statuses)))
    if from_payment_statuses is not None:
        stmt = stmt.where(BadgeRequest.payment_status.in_(list(from_payment_statuses)))
    res = await db.execute(
        stmt.values(**values).execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def is_event_processed(db: AsyncSession, event_id: str) -> bool:
    return await db.get(ProcessedWebhookEvent, event_id) is not None


def record_event(
    db: AsyncSession,
    event_id: str,
    event_type: str,
    badge_request_id: Optional[int] = None,
) -> ProcessedWebhookEvent:
    """Stage the event id; it commits with the state change it produced."""
    processed = ProcessedWebhookEvent(
        event_id=event_id,
        event_type=event_type,
        badge_request_id=badge_request_id,
    )
    db.add(processed)
    return processed
