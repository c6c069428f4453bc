"""
Appointments API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import List
from datetime import datetime

from backoffice.api.v1.deps import get_actor
from backoffice.api.v1.leads import cascade_payload
from backoffice.core.actor import Actor
from backoffice.core.database import get_db
from backoffice.models.appointment import Appointment
from backoffice.models.lead import LeadStage
from backoffice.services import cascade_service

router = APIRouter()


class AppointmentRescheduleRequest(BaseModel):
    start_time: datetime
    end_time: datetime


class AppointmentResponse(BaseModel):
    id: str
    lead_id: str
    lead_name: str
    owner_id: str
    stage: LeadStage
    start_time: datetime
    end_time: datetime

    class Config:
        from_attributes = True


@router.get("", response_model=List[AppointmentResponse])
async def list_my_appointments(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Upcoming appointments owned by the acting staff member"""
    return db.query(Appointment).filter(
        Appointment.owner_id == actor.id,
        Appointment.end_time >= datetime.utcnow()
    ).order_by(Appointment.start_time).all()


@router.patch("/{appointment_id}")
async def reschedule_appointment(
    appointment_id: str,
    request: AppointmentRescheduleRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Move an appointment to a new time slot"""
    result = cascade_service.reschedule_appointment(
        db, appointment_id, request.start_time, request.end_time, actor
    )
    return cascade_payload(result)
