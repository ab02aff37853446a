"""Admin vetting queue and decisions."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.api.deps import get_notifier
from fixers.auth.dependencies import require_admin
from fixers.db import get_db
from fixers.models import User
from fixers.schemas.vetting import (
    AgentFixerResponse,
    ApproveVettingRequest,
    PendingVettingItem,
    RejectVettingRequest,
)
from fixers.services.notifier import Notifier
from fixers.services.vetting import (
    approve_vetted_fixer,
    get_pending_vetting_requests,
    reject_vetted_fixer,
)

router = APIRouter(prefix="/vetting")


@router.get("/pending", response_model=List[PendingVettingItem])
async def pending_vetting(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    """Fixers waiting for a vetting decision, oldest first."""
    return await get_pending_vetting_requests(db)


@router.post("/agents/{agent_id}/fixers/{fixer_id}/approve", response_model=AgentFixerResponse)
async def approve_fixer(
    agent_id: int,
    fixer_id: int,
    data: ApproveVettingRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    notifier: Optional[Notifier] = Depends(get_notifier),
):
    return await approve_vetted_fixer(
        db,
        agent_id,
        fixer_id,
        approved_by_user_id=current_user.id,
        notes=data.notes,
        notifier=notifier,
    )


@router.post("/agents/{agent_id}/fixers/{fixer_id}/reject", response_model=AgentFixerResponse)
async def reject_fixer(
    agent_id: int,
    fixer_id: int,
    data: RejectVettingRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    notifier: Optional[Notifier] = Depends(get_notifier),
):
    return await reject_vetted_fixer(
        db,
        agent_id,
        fixer_id,
        data.reason,
        rejected_by_user_id=current_user.id,
        notifier=notifier,
    )
