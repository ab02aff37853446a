"""
Agent fixer registration and admin vetting.

vet_status: PENDING -> APPROVED | REJECTED. Both outcomes are final; a
rejected fixer needs a fresh relationship, not a second decision.
Until a fixer is APPROVED (and the relationship ACTIVE) the agent cannot
route work to them.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fixers.crud.agent_fixers import (
    count_active_fixers,
    get_relationship,
    update_if_pending,
)
from fixers.crud.agents import increment_fixers_managed
from fixers.crud.users import get_admin_ids
from fixers.db import atomic
from fixers.errors import (
    FixerLimitReachedError,
    FixersError,
    InvalidStateError,
    NotFoundError,
)
from fixers.models import (
    Agent,
    AgentFixer,
    AgentStatus,
    RelationshipStatus,
    User,
    UserRole,
    VetStatus,
)
from fixers.models.base import utcnow
from fixers.schemas.vetting import FixerSummary, ManagedFixerItem, PendingVettingItem
from fixers.services.notifier import (
    NotificationEvent,
    Notifier,
    notify_many,
    notify_safely,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VettingResult:
    relationship_id: int
    status: VetStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


async def _require_relationship(db: AsyncSession, agent_id: int, fixer_id: int) -> AgentFixer:
    relationship = await get_relationship(db, agent_id, fixer_id)
    if not relationship:
        raise NotFoundError("Agent-fixer relationship not found")
    return relationship


async def _require_agent(db: AsyncSession, agent_id: int) -> Agent:
    agent = await db.get(Agent, agent_id)
    if not agent:
        raise NotFoundError("Agent not found")
    return agent


async def register_agent_fixer(
    db: AsyncSession,
    agent_id: int,
    fixer_id: int,
    notes: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> AgentFixer:
    """
    Put a fixer on an agent's roster, pending vetting.

    Raises:
        NotFoundError: Unknown agent or fixer
        InvalidStateError: Agent not ACTIVE, or the pair already exists
        FixerLimitReachedError: Agent is at max_fixers
    """
    agent = await _require_agent(db, agent_id)
    if agent.status != AgentStatus.ACTIVE:
        raise InvalidStateError("Agent account is not active")

    fixer = await db.get(User, fixer_id)
    if not fixer or fixer.role != UserRole.FIXER:
        raise NotFoundError("Fixer not found")

    if await get_relationship(db, agent_id, fixer_id):
        raise InvalidStateError("Fixer is already registered with this agent")

    if await count_active_fixers(db, agent_id) >= agent.max_fixers:
        raise FixerLimitReachedError(
            f"Agent already manages the maximum of {agent.max_fixers} fixers"
        )

    try:
        async with atomic(db):
            relationship = AgentFixer(
                agent_id=agent_id,
                fixer_id=fixer_id,
                status=RelationshipStatus.ACTIVE,
                vet_status=VetStatus.PENDING,
                vet_notes=notes,
                registered_at=utcnow(),
            )
            db.add(relationship)
            await increment_fixers_managed(db, agent_id)
    except IntegrityError:
        # Lost a race with an identical registration
        raise InvalidStateError("Fixer is already registered with this agent")

    logger.info(f"Agent {agent_id} registered fixer {fixer_id} (relationship {relationship.id})")

    await notify_safely(
        notifier,
        NotificationEvent.FIXER_REGISTERED,
        fixer_id,
        {"agent_id": agent_id},
    )
    return relationship


async def submit_fixer_for_vetting(
    db: AsyncSession,
    agent_id: int,
    fixer_id: int,
    notes: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> AgentFixer:
    """Mark a pending fixer ready for admin review and alert every admin."""
    relationship = await _require_relationship(db, agent_id, fixer_id)
    if relationship.vet_status != VetStatus.PENDING:
        raise InvalidStateError(
            f"Fixer vetting status is already {relationship.vet_status.value}"
        )

    values = {"vet_submitted_at": utcnow()}
    if notes is not None:
        values["vet_notes"] = notes

    async with atomic(db):
        if not await update_if_pending(db, relationship.id, **values):
            raise InvalidStateError("Fixer is no longer pending vetting")

    await db.refresh(relationship)
    logger.info(f"Agent {agent_id} submitted fixer {fixer_id} for vetting")

    admin_ids = await get_admin_ids(db)
    await notify_many(
        notifier,
        NotificationEvent.FIXER_NEEDS_VETTING,
        admin_ids,
        {"agent_id": agent_id, "fixer_id": fixer_id},
    )
    return relationship


async def approve_vetted_fixer(
    db: AsyncSession,
    agent_id: int,
    fixer_id: int,
    approved_by_user_id: int,
    notes: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> AgentFixer:
    """Admin approval. Only a PENDING relationship can be approved."""
    relationship = await _require_relationship(db, agent_id, fixer_id)
    if relationship.vet_status != VetStatus.PENDING:
        raise InvalidStateError("Fixer is not pending vetting approval")

    values = {
        "vet_status": VetStatus.APPROVED,
        "vetted_at": utcnow(),
        "vetted_by_id": approved_by_user_id,
    }
    if notes is not None:
        values["vet_notes"] = notes

    async with atomic(db):
        if not await update_if_pending(db, relationship.id, **values):
            raise InvalidStateError("Fixer is not pending vetting approval")

    await db.refresh(relationship)
    logger.info(f"Fixer {fixer_id} approved for agent {agent_id} by user {approved_by_user_id}")

    agent = await _require_agent(db, agent_id)
    await notify_safely(
        notifier,
        NotificationEvent.VETTING_APPROVED,
        agent.user_id,
        {"fixer_id": fixer_id},
    )
    return relationship


async def reject_vetted_fixer(
    db: AsyncSession,
    agent_id: int,
    fixer_id: int,
    reason: str,
    rejected_by_user_id: Optional[int] = None,
    notifier: Optional[Notifier] = None,
) -> AgentFixer:
    """Admin rejection. Also deactivates the relationship."""
    if not reason or not reason.strip():
        raise FixersError("A rejection reason is required")

    relationship = await _require_relationship(db, agent_id, fixer_id)
    if relationship.vet_status != VetStatus.PENDING:
        raise InvalidStateError("Fixer is not pending vetting approval")

    async with atomic(db):
        updated = await update_if_pending(
            db,
            relationship.id,
            vet_status=VetStatus.REJECTED,
            status=RelationshipStatus.INACTIVE,
            vetted_at=utcnow(),
            vetted_by_id=rejected_by_user_id,
            vet_notes=reason,
            rejection_reason=reason,
        )
        if not updated:
            raise InvalidStateError("Fixer is not pending vetting approval")

    await db.refresh(relationship)
    logger.info(f"Fixer {fixer_id} rejected for agent {agent_id}: {reason}")

    agent = await _require_agent(db, agent_id)
    await notify_safely(
        notifier,
        NotificationEvent.VETTING_REJECTED,
        agent.user_id,
        {"fixer_id": fixer_id, "reason": reason},
    )
    return relationship


async def requires_vetting(db: AsyncSession, agent_id: int, fixer_id: int) -> bool:
    """
    Whether the agent is still blocked from routing work to the fixer.

    Unknown or inactive relationships count as blocked.
    """
    relationship = await get_relationship(db, agent_id, fixer_id)
    if not relationship:
        return True
    if relationship.status != RelationshipStatus.ACTIVE:
        return True
    return relationship.vet_status != VetStatus.APPROVED


async def get_vetting_status(db: AsyncSession, agent_id: int, fixer_id: int) -> VettingResult:
    relationship = await _require_relationship(db, agent_id, fixer_id)
    approved = relationship.vet_status == VetStatus.APPROVED
    rejected = relationship.vet_status == VetStatus.REJECTED
    return VettingResult(
        relationship_id=relationship.id,
        status=relationship.vet_status,
        approved_by=relationship.vetted_by_id if approved else None,
        approved_at=relationship.vetted_at if approved else None,
        rejected_at=relationship.vetted_at if rejected else None,
        rejection_reason=relationship.rejection_reason if rejected else None,
    )


def _fixer_summary(fixer: User) -> FixerSummary:
    profile = fixer.fixer_profile
    return FixerSummary(
        id=fixer.id,
        name=fixer.name,
        email=fixer.email,
        years_of_service=profile.years_of_service if profile else None,
    )


async def get_pending_vetting_requests(db: AsyncSession) -> list[PendingVettingItem]:
    """Admin queue, oldest registration first."""
    res = await db.execute(
        select(AgentFixer)
        .options(
            selectinload(AgentFixer.agent).selectinload(Agent.user),
            selectinload(AgentFixer.fixer).selectinload(User.fixer_profile),
        )
        .where(AgentFixer.vet_status == VetStatus.PENDING)
        .order_by(AgentFixer.registered_at, AgentFixer.id)
    )
    return [
        PendingVettingItem(
            relationship_id=af.id,
            agent_id=af.agent_id,
            agent_user_id=af.agent.user_id,
            agent_name=af.agent.user.name,
            fixer=_fixer_summary(af.fixer),
            registered_at=af.registered_at,
            vet_submitted_at=af.vet_submitted_at,
            vet_notes=af.vet_notes,
        )
        for af in res.scalars().all()
    ]


async def get_agent_fixers_with_vetting_status(
    db: AsyncSession,
    agent_id: int,
) -> list[ManagedFixerItem]:
    """Agent roster, newest first."""
    res = await db.execute(
        select(AgentFixer)
        .options(selectinload(AgentFixer.fixer).selectinload(User.fixer_profile))
        .where(AgentFixer.agent_id == agent_id)
        .order_by(AgentFixer.registered_at.desc(), AgentFixer.id.desc())
    )
    return [
        ManagedFixerItem(
            relationship_id=af.id,
            fixer=_fixer_summary(af.fixer),
            status=af.status,
            vet_status=af.vet_status,
            vetted_at=af.vetted_at,
            vet_notes=af.vet_notes,
            added_at=af.registered_at,
        )
        for af in res.scalars().all()
    ]
