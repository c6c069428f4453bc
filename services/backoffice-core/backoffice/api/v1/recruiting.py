"""
Recruiting pipeline API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from backoffice.api.v1.deps import get_actor
from backoffice.core.actor import Actor
from backoffice.core.database import get_db
from backoffice.core.errors import NotFound, PermissionDenied
from backoffice.models.candidate import Candidate, PipelineStatus
from backoffice.services import pipeline_service
from backoffice.services.messaging_client import WhatsAppClient, get_whatsapp_client

router = APIRouter()


class ApplicationRequest(BaseModel):
    full_name: str
    whatsapp_number: str
    email: Optional[str] = None
    source: str = "Application Form"
    motivation: Optional[str] = None
    score: Optional[float] = None


class TransitionRequest(BaseModel):
    target_status: PipelineStatus
    reason: Optional[str] = None


class CandidateResponse(BaseModel):
    id: str
    full_name: str
    email: Optional[str]
    whatsapp_number: str
    pipeline_status: PipelineStatus
    last_status_change_date: datetime
    applied_date: datetime
    source: str
    recruiter: Optional[str]
    status_reason: Optional[str]
    score: Optional[float]

    class Config:
        from_attributes = True


@router.post("/applications", response_model=CandidateResponse, status_code=201)
async def submit_application(
    request: ApplicationRequest,
    db: Session = Depends(get_db)
):
    """Public application form"""
    return pipeline_service.submit_application(
        db,
        full_name=request.full_name,
        whatsapp_number=request.whatsapp_number,
        email=request.email,
        source=request.source,
        motivation=request.motivation,
        score=request.score
    )


@router.get("/candidates", response_model=List[CandidateResponse])
async def list_candidates(
    status: Optional[PipelineStatus] = None,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    if not actor.can_manage_recruiting():
        raise PermissionDenied(f"{actor.role.value} cannot manage recruiting")

    query = db.query(Candidate)
    if status is not None:
        query = query.filter(Candidate.pipeline_status == status)
    return query.order_by(Candidate.applied_date.desc()).all()


@router.get("/candidates/stale", response_model=List[CandidateResponse])
async def list_stale_candidates(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Candidates waiting too long in Approved or Onboarding"""
    if not actor.can_manage_recruiting():
        raise PermissionDenied(f"{actor.role.value} cannot manage recruiting")
    return pipeline_service.list_stale_candidates(db)


@router.get("/candidates/{candidate_id}/transitions")
async def get_allowed_transitions(
    candidate_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Statuses the candidate can move to next"""
    candidate = db.query(Candidate).filter(Candidate.id == candidate_id).first()
    if not candidate:
        raise NotFound(f"Candidate {candidate_id} not found")

    targets = pipeline_service.allowed_targets(candidate.pipeline_status)
    return {
        "candidate_id": candidate.id,
        "current_status": candidate.pipeline_status.value,
        "allowed": sorted(status.value for status in targets)
    }


@router.post("/candidates/{candidate_id}/transition")
async def transition_candidate(
    candidate_id: str,
    request: TransitionRequest,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
    gateway: WhatsAppClient = Depends(get_whatsapp_client)
):
    """
    Move a candidate to a new pipeline status.
    Entering Interviews or Approved sends a WhatsApp message to the candidate.
    """
    result = await pipeline_service.transition(
        db,
        candidate_id,
        request.target_status,
        actor,
        gateway=gateway,
        reason=request.reason
    )
    return {
        "candidate": CandidateResponse.model_validate(result.candidate).model_dump(mode="json"),
        "previous_status": result.previous_status.value,
        "message_sent": result.message.success if result.message else None,
        "warnings": [warning.as_dict() for warning in result.warnings]
    }
