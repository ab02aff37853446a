"""
BadgeRequest model: a fixer buying a badge and having it reviewed.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fixers.models.base import BaseModel, Money

if TYPE_CHECKING:
    from fixers.models.badge import Badge
    from fixers.models.user import User


class BadgePaymentStatus(str, Enum):
    """State of the charge, independent of the review status."""
    PENDING = "PENDING"
    PAID = "PAID"
    REFUNDED = "REFUNDED"
    CANCELLED = "CANCELLED"


class BadgeRequestStatus(str, Enum):
    """
    Review lifecycle.

    PENDING -> PAYMENT_RECEIVED -> UNDER_REVIEW -> APPROVED | REJECTED
    PENDING -> EXPIRED (too many failed charges) | CANCELLED
    """
    PENDING = "PENDING"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class BadgeRequest(BaseModel):
    """
    A fixer's request for a badge.

    request_metadata is free-form JSON owned by the server:
    failedPaymentAttempts, lastFailedAt, expiredAt, expiredReason,
    cancelledAt, cancelledReason.
    """

    __tablename__ = "badge_requests"

    fixer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    badge_id: Mapped[int] = mapped_column(
        ForeignKey("badges.id"),
        nullable=False,
    )
    payment_ref: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=True,
        comment="Payment intent id at the payment provider",
    )
    payment_status: Mapped[BadgePaymentStatus] = mapped_column(
        SQLAlchemyEnum(
            BadgePaymentStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=BadgePaymentStatus.PENDING,
        nullable=False,
    )
    status: Mapped[BadgeRequestStatus] = mapped_column(
        SQLAlchemyEnum(
            BadgeRequestStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=BadgeRequestStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_amount: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Review
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    reviewed_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )

    # The attribute cannot be called "metadata" on a declarative class
    request_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    fixer: Mapped["User"] = relationship("User", foreign_keys=[fixer_id])
    badge: Mapped["Badge"] = relationship("Badge")

    @property
    def failed_payment_attempts(self) -> int:
        return int((self.request_metadata or {}).get("failedPaymentAttempts", 0))

    def __repr__(self) -> str:
        return (
            f"<BadgeRequest(id={self.id}, status={self.status}, "
            f"payment_status={self.payment_status})>"
        )
