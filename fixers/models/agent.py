"""
Agent and agent-managed fixer relationship models.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fixers.models.base import BaseModel, Money, utcnow

if TYPE_CHECKING:
    from fixers.models.user import User


class AgentStatus(str, Enum):
    """Agent account state."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    BANNED = "BANNED"


class RelationshipStatus(str, Enum):
    """Whether an agent still manages the fixer."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class VetStatus(str, Enum):
    """Admin vetting of an agent-managed fixer. APPROVED and REJECTED are final."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Agent(BaseModel):
    """
    Reseller managing a roster of fixers for commission.

    Wallet invariant: wallet_balance == total_earned - total_withdrawn.
    The three money columns are only ever changed together, by relative
    deltas, inside one transaction (see fixers.crud.agents).
    """

    __tablename__ = "agents"
    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_agents_wallet_non_negative"),
        CheckConstraint(
            "commission_percentage >= 0 AND commission_percentage <= 100",
            name="ck_agents_commission_percentage_range",
        ),
    )

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
    )
    status: Mapped[AgentStatus] = mapped_column(
        SQLAlchemyEnum(
            AgentStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=AgentStatus.PENDING,
        nullable=False,
    )
    commission_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        default=Decimal("10.00"),
        nullable=False,
        comment="Percentage of order value credited to the agent (0-100)",
    )

    # Wallet
    wallet_balance: Mapped[Decimal] = mapped_column(
        Money,
        default=Decimal("0"),
        nullable=False,
    )
    total_earned: Mapped[Decimal] = mapped_column(
        Money,
        default=Decimal("0"),
        nullable=False,
    )
    total_withdrawn: Mapped[Decimal] = mapped_column(
        Money,
        default=Decimal("0"),
        nullable=False,
    )

    # Roster limits
    max_fixers: Mapped[int] = mapped_column(
        Integer,
        default=50,
        nullable=False,
    )
    max_clients: Mapped[int] = mapped_column(
        Integer,
        default=100,
        nullable=False,
    )
    fixer_bonus_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    total_fixers_managed: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    user: Mapped["User"] = relationship("User")

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, user_id={self.user_id}, wallet={self.wallet_balance})>"


class AgentFixer(BaseModel):
    """
    An agent managing a fixer.

    vet_status moves PENDING -> APPROVED | REJECTED exactly once, and
    bonus_paid flips False -> True exactly once. Both transitions are
    written with guarded updates.
    """

    __tablename__ = "agent_fixers"
    __table_args__ = (
        UniqueConstraint("agent_id", "fixer_id", name="uq_agent_fixers_agent_fixer"),
    )

    agent_id: Mapped[int] = mapped_column(
        ForeignKey("agents.id"),
        nullable=False,
        index=True,
    )
    fixer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    status: Mapped[RelationshipStatus] = mapped_column(
        SQLAlchemyEnum(
            RelationshipStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=RelationshipStatus.ACTIVE,
        nullable=False,
    )
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    # Vetting
    vet_status: Mapped[VetStatus] = mapped_column(
        SQLAlchemyEnum(
            VetStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=VetStatus.PENDING,
        nullable=False,
        index=True,
    )
    vet_submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    vetted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When an admin approved or rejected the fixer",
    )
    vetted_by_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"),
        nullable=True,
    )
    vet_notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    # Registration bonus
    bonus_paid: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    bonus_amount: Mapped[Optional[Decimal]] = mapped_column(
        Money,
        nullable=True,
    )
    bonus_paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    first_order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("orders.id"),
        nullable=True,
    )

    agent: Mapped["Agent"] = relationship("Agent")
    fixer: Mapped["User"] = relationship("User", foreign_keys=[fixer_id])

    def __repr__(self) -> str:
        return (
            f"<AgentFixer(id={self.id}, agent_id={self.agent_id}, "
            f"fixer_id={self.fixer_id}, vet_status={self.vet_status})>"
        )
