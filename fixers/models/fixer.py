"""
Fixer profile, orders and reviews.

These are the records the performance scorer reads; the core never writes
them except for tests and seeding.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fixers.models.base import BaseModel, Money

if TYPE_CHECKING:
    from fixers.models.user import User


class OrderStatus(str, Enum):
    """Lifecycle of a marketplace order."""
    PENDING = "PENDING"
    PAID = "PAID"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    DISPUTED = "DISPUTED"


class FixerProfile(BaseModel):
    """Service-provider statistics maintained by the marketplace."""

    __tablename__ = "fixer_profiles"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
    )
    total_jobs_completed: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    average_response_minutes: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="None until the fixer has answered a request",
    )
    years_of_service: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    user: Mapped["User"] = relationship("User", back_populates="fixer_profile")

    def __repr__(self) -> str:
        return f"<FixerProfile(user_id={self.user_id}, jobs={self.total_jobs_completed})>"


class Order(BaseModel):
    """A job booked by a client with a fixer."""

    __tablename__ = "orders"

    client_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )
    fixer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
    )
    status: Mapped[OrderStatus] = mapped_column(
        SQLAlchemyEnum(
            OrderStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status={self.status}, total={self.total_amount})>"


class Review(BaseModel):
    """Client rating of a fixer (1-5 stars)."""

    __tablename__ = "reviews"

    order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("orders.id"),
        nullable=True,
    )
    fixer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    reviewer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )
    rating: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    comment: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    is_visible: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, fixer_id={self.fixer_id}, rating={self.rating})>"
