"""
Leads API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime

from backoffice.api.v1.deps import get_actor
from backoffice.core.actor import Actor
from backoffice.core.database import get_db
from backoffice.core.errors import NotFound
from backoffice.models.lead import Lead, LeadChannel, LeadLanguage, LeadStage, NoteType
from backoffice.services import audit_service, cascade_service, lead_service
from backoffice.services.cascade_service import CascadeResult

router = APIRouter()


class LeadCreateRequest(BaseModel):
    name: str
    phone: str
    owner_id: str
    dealership_id: str
    email: Optional[str] = None
    channel: LeadChannel = LeadChannel.OTHER
    language: LeadLanguage = LeadLanguage.SPANISH
    stage: LeadStage = LeadStage.NUEVO
    interested_vehicle_id: Optional[str] = None
    initial_notes: Optional[str] = None


class LeadPatchRequest(BaseModel):
    stage: Optional[str] = None
    owner_id: Optional[str] = None
    owner_name: Optional[str] = None
    dealership_id: Optional[str] = None
    dealership_name: Optional[str] = None
    name: Optional[str] = None
    expected_version: Optional[int] = None


class VehicleLinkRequest(BaseModel):
    vehicle_id: str


class NoteCreateRequest(BaseModel):
    content: str


class AppointmentCreateRequest(BaseModel):
    start_time: datetime
    end_time: datetime


class LeadResponse(BaseModel):
    id: str
    name: str
    phone: str
    email: Optional[str]
    channel: LeadChannel
    language: LeadLanguage
    stage: LeadStage
    owner_id: str
    owner_name: str
    dealership_id: str
    dealership_name: str
    interested_vehicle_id: Optional[str]
    broker_commission: Optional[float]
    version: int
    created_at: datetime
    last_activity: datetime

    class Config:
        from_attributes = True


class NoteResponse(BaseModel):
    id: str
    lead_id: str
    content: str
    author: str
    type: NoteType
    date: datetime

    class Config:
        from_attributes = True


def cascade_payload(result: CascadeResult) -> Dict[str, Any]:
    payload = {
        "lead": LeadResponse.model_validate(result.lead).model_dump(mode="json") if result.lead else None,
        "changed": sorted(result.changes),
        "appointments_updated": result.appointments_updated,
        "notifications_sent": len(result.notifications),
        "warnings": [warning.as_dict() for warning in result.warnings],
    }
    if result.appointment is not None:
        payload["appointment_id"] = result.appointment.id
    return payload


@router.get("", response_model=List[LeadResponse])
async def list_leads(
    stage: Optional[LeadStage] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """List the leads visible to the acting staff member"""
    return lead_service.visible_leads(db, actor, stage)


@router.post("", status_code=201)
async def create_lead(
    request: LeadCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Create a new lead"""
    result = cascade_service.create_lead(
        db,
        actor,
        name=request.name,
        phone=request.phone,
        owner_id=request.owner_id,
        dealership_id=request.dealership_id,
        email=request.email,
        channel=request.channel,
        language=request.language,
        stage=request.stage,
        interested_vehicle_id=request.interested_vehicle_id,
        initial_notes=request.initial_notes
    )
    return cascade_payload(result)


@router.get("/stale")
async def list_stale_leads(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Open leads with no recent activity, grouped by owner"""
    grouped = lead_service.find_stale_leads(db)
    return {
        owner_id: [LeadResponse.model_validate(lead).model_dump(mode="json") for lead in leads]
        for owner_id, leads in grouped.items()
    }


@router.post("/stale/reminders")
async def send_stale_reminders(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Notify every owner with stale leads (called by the scheduler)"""
    sent = lead_service.send_stale_lead_reminders(db)
    return {"reminders_sent": len(sent)}


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Get lead details"""
    lead = db.query(Lead).filter(Lead.id == lead_id).first()
    if not lead:
        raise NotFound(f"Lead {lead_id} not found")
    return lead


@router.patch("/{lead_id}")
async def update_lead(
    lead_id: str,
    request: LeadPatchRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """
    Change stage, owner, dealership or name.
    Open appointments are kept in sync in the same commit.
    """
    patch = request.model_dump(exclude_unset=True)
    expected_version = patch.pop("expected_version", None)
    result = cascade_service.apply_lead_mutation(
        db, lead_id, patch, actor, expected_version=expected_version
    )
    return cascade_payload(result)


@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Delete a lead and its appointments (Admin only)"""
    removed = cascade_service.delete_lead(db, lead_id, actor)
    return {"deleted": lead_id, "appointments_removed": removed}


@router.post("/{lead_id}/vehicle")
async def link_vehicle(
    lead_id: str,
    request: VehicleLinkRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Link a vehicle of interest"""
    result = cascade_service.link_vehicle(db, lead_id, request.vehicle_id, actor)
    return cascade_payload(result)


@router.get("/{lead_id}/notes", response_model=List[NoteResponse])
async def get_lead_notes(
    lead_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Lead history, newest first"""
    return audit_service.history(db, lead_id)


@router.post("/{lead_id}/notes", response_model=NoteResponse, status_code=201)
async def add_lead_note(
    lead_id: str,
    request: NoteCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Add a manual note"""
    return audit_service.add_manual_note(db, lead_id, request.content, actor)


@router.post("/{lead_id}/appointments", status_code=201)
async def create_appointment(
    lead_id: str,
    request: AppointmentCreateRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Schedule an appointment for a lead"""
    result = cascade_service.create_appointment(
        db, lead_id, request.start_time, request.end_time, actor
    )
    return cascade_payload(result)
