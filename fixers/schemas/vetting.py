"""Agent-fixer registration and vetting schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from fixers.models.agent import RelationshipStatus, VetStatus


class RegisterFixerRequest(BaseModel):
    fixer_id: int
    notes: Optional[str] = Field(None, max_length=2000)


class SubmitVettingRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class ApproveVettingRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class RejectVettingRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class AgentFixerResponse(BaseModel):
    """An agent-fixer relationship."""

    id: int
    agent_id: int
    fixer_id: int
    status: RelationshipStatus
    vet_status: VetStatus
    registered_at: datetime
    vet_submitted_at: Optional[datetime] = None
    vetted_at: Optional[datetime] = None
    vetted_by_id: Optional[int] = None
    vet_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    bonus_paid: bool

    model_config = {"from_attributes": True}


class VettingStatusResponse(BaseModel):
    relationship_id: int
    status: VetStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


class FixerSummary(BaseModel):
    id: int
    name: Optional[str] = None
    email: str
    years_of_service: Optional[int] = None


class PendingVettingItem(BaseModel):
    """Admin queue entry."""

    relationship_id: int
    agent_id: int
    agent_user_id: int
    agent_name: Optional[str] = None
    fixer: FixerSummary
    registered_at: datetime
    vet_submitted_at: Optional[datetime] = None
    vet_notes: Optional[str] = None


class ManagedFixerItem(BaseModel):
    """Agent roster entry."""

    relationship_id: int
    fixer: FixerSummary
    status: RelationshipStatus
    vet_status: VetStatus
    vetted_at: Optional[datetime] = None
    vet_notes: Optional[str] = None
    added_at: datetime


class RequiresVettingResponse(BaseModel):
    agent_id: int
    fixer_id: int
    requires_vetting: bool


class ManagedFixerList(BaseModel):
    items: List[ManagedFixerItem]
    total: int
