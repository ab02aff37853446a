"""
User model shared by admins, agents, fixers and clients.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fixers.models.badge import BadgeTier
from fixers.models.base import BaseModel

if TYPE_CHECKING:
    from fixers.models.fixer import FixerProfile


class UserRole(str, Enum):
    """User roles for access control."""
    ADMIN = "ADMIN"
    AGENT = "AGENT"
    FIXER = "FIXER"
    CLIENT = "CLIENT"


class User(BaseModel):
    """
    Marketplace account.

    Fixers additionally carry a FixerProfile and a cached badge tier,
    refreshed whenever a badge is granted or expires.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    name: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )
    role: Mapped[UserRole] = mapped_column(
        SQLAlchemyEnum(
            UserRole,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Trust tier (fixers only)
    badge_tier: Mapped[Optional[BadgeTier]] = mapped_column(
        SQLAlchemyEnum(
            BadgeTier,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=True,
    )
    last_tier_update: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    fixer_profile: Mapped[Optional["FixerProfile"]] = relationship(
        "FixerProfile",
        back_populates="user",
        uselist=False,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"
