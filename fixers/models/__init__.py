"""
Database models for Fixers.

All models are exported here for convenient imports:
    from fixers.models import Agent, AgentCommission, BadgeRequest, etc.
"""

from fixers.models.agent import (
    Agent,
    AgentFixer,
    AgentStatus,
    RelationshipStatus,
    VetStatus,
)
from fixers.models.badge import (
    Badge,
    BadgeAssignment,
    BadgeAssignmentStatus,
    BadgeTier,
    BadgeType,
)
from fixers.models.badge_request import (
    BadgePaymentStatus,
    BadgeRequest,
    BadgeRequestStatus,
)
from fixers.models.base import Base, BaseModel, TimestampMixin
from fixers.models.fixer import FixerProfile, Order, OrderStatus, Review
from fixers.models.ledger import AgentCommission, CommissionType
from fixers.models.notification import Notification, ProcessedWebhookEvent
from fixers.models.user import User, UserRole

__all__ = [
    # Base
    "Base",
    "BaseModel",
    "TimestampMixin",
    # User
    "User",
    "UserRole",
    # Fixer
    "FixerProfile",
    "Order",
    "OrderStatus",
    "Review",
    # Agent
    "Agent",
    "AgentFixer",
    "AgentStatus",
    "RelationshipStatus",
    "VetStatus",
    # Ledger
    "AgentCommission",
    "CommissionType",
    # Badges
    "Badge",
    "BadgeAssignment",
    "BadgeAssignmentStatus",
    "BadgeTier",
    "BadgeType",
    "BadgeRequest",
    "BadgeRequestStatus",
    "BadgePaymentStatus",
    # Notifications
    "Notification",
    "ProcessedWebhookEvent",
]
