"""Initial database schema

Revision ID: 000_initial_schema
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "000_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create all initial tables."""

    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("role", sa.Enum("ADMIN", "AGENT", "FIXER", "CLIENT", name="userrole"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "badge_tier",
            sa.Enum("BRONZE", "SILVER", "GOLD", "PLATINUM", name="badgetier"),
            nullable=True,
        ),
        sa.Column("last_tier_update", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    # Fixer profiles
    op.create_table(
        "fixer_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("total_jobs_completed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("average_response_minutes", sa.Integer(), nullable=True),
        sa.Column("years_of_service", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    # Orders
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("fixer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "PAID", "COMPLETED", "CANCELLED", "DISPUTED", name="orderstatus"),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_orders_fixer_id", "orders", ["fixer_id"])
    op.create_index("ix_orders_status", "orders", ["status"])

    # Reviews
    op.create_table(
        "reviews",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=True),
        sa.Column("fixer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reviewer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_reviews_fixer_id", "reviews", ["fixer_id"])

    # Agents
    op.create_table(
        "agents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column(
            "status",
            sa.Enum("PENDING", "ACTIVE", "SUSPENDED", "BANNED", name="agentstatus"),
            nullable=False,
        ),
        sa.Column("commission_percentage", sa.Numeric(5, 2), nullable=False, server_default="10.00"),
        sa.Column("wallet_balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_earned", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_withdrawn", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("max_fixers", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("max_clients", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("fixer_bonus_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("total_fixers_managed", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("wallet_balance >= 0", name="ck_agents_wallet_non_negative"),
        sa.CheckConstraint(
            "commission_percentage >= 0 AND commission_percentage <= 100",
            name="ck_agents_commission_percentage_range",
        ),
    )

    # Agent-fixer relationships
    op.create_table(
        "agent_fixers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id"), nullable=False),
        sa.Column("fixer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("status", sa.Enum("ACTIVE", "INACTIVE", name="relationshipstatus"), nullable=False),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "vet_status",
            sa.Enum("PENDING", "APPROVED", "REJECTED", name="vetstatus"),
            nullable=False,
        ),
        sa.Column("vet_submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vetted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("vetted_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("vet_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("bonus_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bonus_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("bonus_paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("agent_id", "fixer_id", name="uq_agent_fixers_agent_fixer"),
    )
    op.create_index("ix_agent_fixers_agent_id", "agent_fixers", ["agent_id"])
    op.create_index("ix_agent_fixers_fixer_id", "agent_fixers", ["fixer_id"])
    op.create_index("ix_agent_fixers_vet_status", "agent_fixers", ["vet_status"])

    # Commission ledger
    op.create_table(
        "agent_commissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("agent_id", sa.Integer(), sa.ForeignKey("agents.id"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=True),
        sa.Column("agent_fixer_id", sa.Integer(), sa.ForeignKey("agent_fixers.id"), nullable=True),
        sa.Column(
            "type",
            sa.Enum("ORDER_COMMISSION", "FIXER_BONUS", name="commissiontype"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_agent_commissions_amount_positive"),
    )
    op.create_index("ix_agent_commissions_agent_id", "agent_commissions", ["agent_id"])
    op.create_index("ix_agent_commissions_order_id", "agent_commissions", ["order_id"])
    op.create_index("ix_agent_commissions_is_paid", "agent_commissions", ["is_paid"])

    # Badges
    op.create_table(
        "badges",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "IDENTITY_VERIFICATION",
                "INSURANCE_VERIFICATION",
                "BACKGROUND_CHECK",
                "SKILL_CERTIFICATION",
                "QUALITY_PERFORMANCE",
                name="badgetype",
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("expiry_months", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("min_jobs_required", sa.Integer(), nullable=True),
        sa.Column("min_average_rating", sa.Float(), nullable=True),
        sa.Column("max_response_minutes", sa.Integer(), nullable=True),
        sa.Column("max_cancellation_rate", sa.Float(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_badges_type", "badges", ["type"])

    # Badge requests
    op.create_table(
        "badge_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("fixer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("badge_id", sa.Integer(), sa.ForeignKey("badges.id"), nullable=False),
        sa.Column("payment_ref", sa.String(255), nullable=True),
        sa.Column(
            "payment_status",
            sa.Enum("PENDING", "PAID", "REFUNDED", "CANCELLED", name="badgepaymentstatus"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "PAYMENT_RECEIVED",
                "UNDER_REVIEW",
                "APPROVED",
                "REJECTED",
                "EXPIRED",
                "CANCELLED",
                name="badgerequeststatus",
            ),
            nullable=False,
        ),
        sa.Column("payment_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_badge_requests_fixer_id", "badge_requests", ["fixer_id"])
    op.create_index("ix_badge_requests_payment_ref", "badge_requests", ["payment_ref"], unique=True)
    op.create_index("ix_badge_requests_status", "badge_requests", ["status"])

    # Badge assignments
    op.create_table(
        "badge_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("fixer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("badge_id", sa.Integer(), sa.ForeignKey("badges.id"), nullable=False),
        sa.Column("request_id", sa.Integer(), sa.ForeignKey("badge_requests.id"), nullable=True),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "EXPIRED", "REVOKED", name="badgeassignmentstatus"),
            nullable=False,
        ),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_badge_assignments_fixer_id", "badge_assignments", ["fixer_id"])
    op.create_index("ix_badge_assignments_status", "badge_assignments", ["status"])

    # Notifications
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    # Processed webhook events
    op.create_table(
        "processed_webhook_events",
        sa.Column("event_id", sa.String(255), primary_key=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("badge_request_id", sa.Integer(), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("processed_webhook_events")
    op.drop_table("notifications")
    op.drop_table("badge_assignments")
    op.drop_table("badge_requests")
    op.drop_table("badges")
    op.drop_table("agent_commissions")
    op.drop_table("agent_fixers")
    op.drop_table("agents")
    op.drop_table("reviews")
    op.drop_table("orders")
    op.drop_table("fixer_profiles")
    op.drop_table("users")

    # Drop enums
    for enum_name in (
        "badgeassignmentstatus",
        "badgerequeststatus",
        "badgepaymentstatus",
        "badgetype",
        "commissiontype",
        "vetstatus",
        "relationshipstatus",
        "agentstatus",
        "orderstatus",
        "badgetier",
        "userrole",
    ):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
