"""
Recruiting pipeline service - candidate state machine and entry messaging
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice.core.actor import Actor
from backoffice.core.config import settings
from backoffice.core.errors import (
    CommitFailed,
    IllegalTransition,
    NotFound,
    PermissionDenied,
    SideEffectFailed,
    ValidationError,
)
from backoffice.models.candidate import Candidate, PipelineStatus
from backoffice.services.messaging_client import SendResult, WhatsAppClient, get_whatsapp_client

logger = logging.getLogger(__name__)


# Directed edges of the recruiting funnel. No self-loops.
ALLOWED_TRANSITIONS: Dict[PipelineStatus, FrozenSet[PipelineStatus]] = {
    PipelineStatus.NEW_APPLICANT: frozenset({
        PipelineStatus.INTERVIEWS,
        PipelineStatus.APPROVED,
        PipelineStatus.ONBOARDING,
        PipelineStatus.REJECTED,
        PipelineStatus.INACTIVE,
    }),
    PipelineStatus.INTERVIEWS: frozenset({
        PipelineStatus.APPROVED,
        PipelineStatus.ONBOARDING,
        PipelineStatus.REJECTED,
        PipelineStatus.INACTIVE,
    }),
    PipelineStatus.APPROVED: frozenset({
        PipelineStatus.ONBOARDING,
        PipelineStatus.REJECTED,
        PipelineStatus.INACTIVE,
    }),
    PipelineStatus.ONBOARDING: frozenset({
        PipelineStatus.ACTIVE,
        PipelineStatus.REJECTED,
        PipelineStatus.INACTIVE,
    }),
    PipelineStatus.ACTIVE: frozenset({
        PipelineStatus.INACTIVE,
    }),
    PipelineStatus.REJECTED: frozenset({
        PipelineStatus.NEW_APPLICANT,
        PipelineStatus.INACTIVE,
    }),
    PipelineStatus.INACTIVE: frozenset({
        PipelineStatus.NEW_APPLICANT,
        PipelineStatus.REJECTED,
    }),
}

# Statuses in which a candidate is expected to respond quickly
STALE_WATCH_STATUSES = (PipelineStatus.APPROVED, PipelineStatus.ONBOARDING)


def _interview_outreach(candidate: Candidate) -> str:
    return (
        f"Hola {_first_name(candidate)}, gracias por tu interés en unirte a "
        f"{settings.RECRUITING_COMPANY_NAME}. Revisamos tu aplicación y queremos "
        f"agendar una entrevista contigo. ¿Qué día y hora te quedan mejor esta semana?"
    )


def _onboarding_invitation(candidate: Candidate) -> str:
    return (
        f"¡Felicidades {_first_name(candidate)}! Fuiste aprobado(a) para iniciar el "
        f"onboarding con {settings.RECRUITING_COMPANY_NAME}. Para confirmar tu lugar, "
        f"responde {settings.ONBOARDING_CONFIRMATION_KEYWORD} a este mensaje."
    )


# Outbound message sent once on entry to a status
ENTRY_MESSAGES = {
    PipelineStatus.INTERVIEWS: _interview_outreach,
    PipelineStatus.APPROVED: _onboarding_invitation,
}


def _first_name(candidate: Candidate) -> str:
    parts = (candidate.full_name or "").split()
    return parts[0] if parts else ""


@dataclass
class TransitionResult:
    candidate: Candidate
    previous_status: PipelineStatus
    message: Optional[SendResult] = None
    warnings: List[SideEffectFailed] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


def allowed_targets(status: PipelineStatus) -> FrozenSet[PipelineStatus]:
    """Statuses reachable from the given one"""
    return ALLOWED_TRANSITIONS.get(PipelineStatus(status), frozenset())


def can_transition(current: PipelineStatus, target: PipelineStatus) -> bool:
    return PipelineStatus(target) in allowed_targets(current)


def _parse_status(value) -> PipelineStatus:
    try:
        return PipelineStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown pipeline status: {value}")


async def transition(
    db: Session,
    candidate_id: str,
    target_status: PipelineStatus,
    actor: Actor,
    gateway: Optional[WhatsAppClient] = None,
    reason: Optional[str] = None,
    now: Optional[datetime] = None
) -> TransitionResult:
    """
    Move a candidate along the recruiting pipeline.

    Illegal edges (including staying in the same status) raise IllegalTransition
    and leave the candidate untouched. After the status is committed, entering
    Interviews or Approved sends one WhatsApp message; a delivery failure is
    reported as a warning and the new status stays.
    """
    if not actor.can_manage_recruiting():
        raise PermissionDenied(f"{actor.role.value} cannot manage recruiting")

    target = _parse_status(target_status)
    candidate = db.query(Candidate).filter(Candidate.id == candidate_id).first()
    if not candidate:
        raise NotFound(f"Candidate {candidate_id} not found")

    current = PipelineStatus(candidate.pipeline_status)
    if not can_transition(current, target):
        raise IllegalTransition(current.value, target.value)

    candidate.pipeline_status = target
    candidate.last_status_change_date = now or datetime.utcnow()
    if reason:
        candidate.status_reason = reason

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Status change for candidate %s failed", candidate_id)
        raise CommitFailed(f"Could not save candidate {candidate_id}: {e.__class__.__name__}") from e
    db.refresh(candidate)

    logger.info(
        "Candidate %s moved from %s to %s by %s",
        candidate.id, current.value, target.value, actor.id
    )

    result = TransitionResult(candidate=candidate, previous_status=current)

    render = ENTRY_MESSAGES.get(target)
    if render is None:
        return result

    gateway = gateway or get_whatsapp_client()
    try:
        sent = await gateway.send(candidate.whatsapp_number, render(candidate))
    except Exception as e:
        logger.exception("Entry message for candidate %s could not be sent", candidate.id)
        sent = SendResult(success=False, message=str(e) or e.__class__.__name__)

    result.message = sent
    if not sent.success:
        logger.warning("Entry message for candidate %s failed: %s", candidate.id, sent.message)
        result.warnings.append(SideEffectFailed(
            effect="messaging",
            detail=sent.message,
            recipient_id=candidate.id
        ))
    return result


def is_stale(candidate: Candidate, now: Optional[datetime] = None, threshold_hours: Optional[int] = None) -> bool:
    """
    True when a candidate has sat in Approved or Onboarding for longer than the
    threshold (48 hours by default). Read-only: nothing is moved automatically.
    """
    if PipelineStatus(candidate.pipeline_status) not in STALE_WATCH_STATUSES:
        return False
    if candidate.last_status_change_date is None:
        return False
    now = now or datetime.utcnow()
    hours = threshold_hours if threshold_hours is not None else settings.CANDIDATE_STALE_HOURS
    return now - candidate.last_status_change_date > timedelta(hours=hours)


def list_stale_candidates(db: Session, now: Optional[datetime] = None) -> List[Candidate]:
    """Candidates currently matching is_stale, oldest first"""
    now = now or datetime.utcnow()
    cutoff = now - timedelta(hours=settings.CANDIDATE_STALE_HOURS)
    return db.query(Candidate).filter(
        Candidate.pipeline_status.in_(STALE_WATCH_STATUSES),
        Candidate.last_status_change_date < cutoff
    ).order_by(Candidate.last_status_change_date).all()


def submit_application(
    db: Session,
    full_name: str,
    whatsapp_number: str,
    email: Optional[str] = None,
    source: str = "Application Form",
    motivation: Optional[str] = None,
    score: Optional[float] = None
) -> Candidate:
    """Register a new applicant at the start of the pipeline"""
    if not full_name or not full_name.strip():
        raise ValidationError("Full name is required")
    if not whatsapp_number or not whatsapp_number.strip():
        raise ValidationError("WhatsApp number is required")

    now = datetime.utcnow()
    candidate = Candidate(
        full_name=full_name.strip(),
        whatsapp_number=whatsapp_number.strip(),
        email=email,
        source=source,
        motivation=motivation,
        score=score,
        pipeline_status=PipelineStatus.NEW_APPLICANT,
        applied_date=now,
        last_status_change_date=now
    )
    db.add(candidate)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Application for %s could not be saved", full_name)
        raise CommitFailed(f"Could not save application: {e.__class__.__name__}") from e
    db.refresh(candidate)
    return candidate
