"""
Staff and dealership API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from backoffice.api.v1.deps import get_actor
from backoffice.core.actor import Actor, Capability
from backoffice.core.database import get_db
from backoffice.core.errors import PermissionDenied
from backoffice.services import bonus_service, cascade_service

router = APIRouter()


class RenameRequest(BaseModel):
    name: str


class BonusResponse(BaseModel):
    staff_id: str
    sales: int
    amount: int
    next_goal: int
    needed_for_next: int
    at_top_tier: bool


@router.get("/{staff_id}/bonus", response_model=BonusResponse)
async def get_staff_bonus(
    staff_id: str,
    window_days: Optional[int] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """
    Bonus progress over the trailing window.
    Brokers may only look at their own numbers.
    """
    can_view_others = actor.has(Capability.VIEW_ALL_LEADS) or actor.has(Capability.VIEW_TEAM_LEADS)
    if staff_id != actor.id and not can_view_others:
        raise PermissionDenied("Brokers can only view their own bonus")

    info = bonus_service.bonus_for_staff(db, staff_id, window_days=window_days)
    return BonusResponse(
        staff_id=staff_id,
        sales=info.sales,
        amount=info.amount,
        next_goal=info.next_goal,
        needed_for_next=info.needed_for_next,
        at_top_tier=info.at_top_tier
    )


@router.patch("/{staff_id}")
async def rename_staff(
    staff_id: str,
    request: RenameRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Rename a staff member; every lead's owner name follows"""
    rewritten = cascade_service.propagate_staff_rename(db, staff_id, request.name, actor)
    return {"staff_id": staff_id, "name": request.name.strip(), "leads_updated": rewritten}


@router.patch("/dealerships/{dealership_id}")
async def rename_dealership(
    dealership_id: str,
    request: RenameRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Rename a dealership; every lead's dealership name follows"""
    rewritten = cascade_service.propagate_dealership_rename(db, dealership_id, request.name, actor)
    return {"dealership_id": dealership_id, "name": request.name.strip(), "leads_updated": rewritten}
