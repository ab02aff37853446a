"""
Agent commission ledger.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fixers.models.base import Base, Money, TimestampMixin

if TYPE_CHECKING:
    from fixers.models.agent import Agent


class CommissionType(str, Enum):
    """What the agent was credited for."""
    ORDER_COMMISSION = "ORDER_COMMISSION"  # Share of a completed order
    FIXER_BONUS = "FIXER_BONUS"            # One-off registration bonus


class AgentCommission(Base, TimestampMixin):
    """
    One credit to an agent's wallet.

    Rows are append-only. The only permitted change is the one-way
    is_paid False -> True transition when the agent withdraws.
    Order commissions start unpaid; fixer bonuses are written already paid.
    """

    __tablename__ = "agent_commissions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_agent_commissions_amount_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    agent_id: Mapped[int] = mapped_column(
        ForeignKey("agents.id"),
        nullable=False,
        index=True,
    )
    order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("orders.id"),
        nullable=True,
        index=True,
    )
    agent_fixer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("agent_fixers.id"),
        nullable=True,
    )
    type: Mapped[CommissionType] = mapped_column(
        SQLAlchemyEnum(
            CommissionType,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Money,
        nullable=False,
    )
    is_paid: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    agent: Mapped["Agent"] = relationship("Agent")

    def __repr__(self) -> str:
        return f"<AgentCommission(id={self.id}, type={self.type}, amount={self.amount})>"
