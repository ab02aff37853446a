"""Admin order settlement endpoint."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from fixers.api.deps import get_notifier
from fixers.auth.dependencies import require_admin
from fixers.db import get_db
from fixers.models import User
from fixers.schemas.commission import CommissionResponse
from fixers.services.notifier import Notifier
from fixers.services.settlement import settle_completed_order

router = APIRouter(prefix="/orders")


class SettlementResponse(BaseModel):
    order_id: int
    agent_id: Optional[int] = None
    commission: Optional[CommissionResponse] = None
    bonus: Optional[CommissionResponse] = None
    already_settled: bool = False


@router.post("/{order_id}/settle", response_model=SettlementResponse)
async def settle_order(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin),
    notifier: Optional[Notifier] = Depends(get_notifier),
):
    """Credit the managing agent for a completed order."""
    result = await settle_completed_order(db, order_id, notifier=notifier)
    return SettlementResponse(
        order_id=result.order_id,
        agent_id=result.agent_id,
        commission=CommissionResponse.model_validate(result.commission) if result.commission else None,
        bonus=CommissionResponse.model_validate(result.bonus) if result.bonus else None,
        already_settled=result.already_settled,
    )
