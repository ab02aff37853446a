"""
Trust badges, their assignments to fixers, and the derived tier.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fixers.models.base import BaseModel, Money, utcnow


class BadgeTier(str, Enum):
    """Aggregate trust level derived from active badges and performance."""
    BRONZE = "BRONZE"
    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class BadgeType(str, Enum):
    IDENTITY_VERIFICATION = "IDENTITY_VERIFICATION"
    INSURANCE_VERIFICATION = "INSURANCE_VERIFICATION"
    BACKGROUND_CHECK = "BACKGROUND_CHECK"
    SKILL_CERTIFICATION = "SKILL_CERTIFICATION"
    QUALITY_PERFORMANCE = "QUALITY_PERFORMANCE"


class BadgeAssignmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class Badge(BaseModel):
    """
    A purchasable trust credential.

    The optional criteria columns are only consulted by the quality
    performance eligibility check; None means "not configured".
    """

    __tablename__ = "badges"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    type: Mapped[BadgeType] = mapped_column(
        SQLAlchemyEnum(
            BadgeType,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    price: Mapped[Decimal] = mapped_column(
        Money,
        default=Decimal("0"),
        nullable=False,
    )
    expiry_months: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Validity after approval; None never expires",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Quality performance criteria
    min_jobs_required: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_average_rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    max_response_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_cancellation_rate: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment="Fraction, e.g. 0.1 = 10%",
    )

    def __repr__(self) -> str:
        return f"<Badge(id={self.id}, name='{self.name}', type={self.type})>"


class BadgeAssignment(BaseModel):
    """A badge held by a fixer. Active while ACTIVE and not past expires_at."""

    __tablename__ = "badge_assignments"

    fixer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    badge_id: Mapped[int] = mapped_column(
        ForeignKey("badges.id"),
        nullable=False,
    )
    request_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("badge_requests.id"),
        nullable=True,
    )
    status: Mapped[BadgeAssignmentStatus] = mapped_column(
        SQLAlchemyEnum(
            BadgeAssignmentStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=BadgeAssignmentStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    badge: Mapped["Badge"] = relationship("Badge")

    def __repr__(self) -> str:
        return (
            f"<BadgeAssignment(id={self.id}, fixer_id={self.fixer_id}, "
            f"badge_id={self.badge_id}, status={self.status})>"
        )
