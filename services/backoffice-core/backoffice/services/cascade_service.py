"""
Lead cascade synchronizer

The only writer of Lead stage/owner/dealership/name, of the denormalized name
caches, and of every Appointment mirror field. Each operation commits the lead and
its open appointments in one transaction, then writes exactly one audit entry and
notifies affected staff. Failures after the commit are logged and returned as
warnings; they never undo the commit.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from backoffice.core.actor import Actor
from backoffice.core.config import settings
from backoffice.core.errors import (
    CommitFailed,
    ConcurrentModification,
    NotFound,
    PermissionDenied,
    SideEffectFailed,
    ValidationError,
)
from backoffice.models.appointment import Appointment
from backoffice.models.inventory import Vehicle, VehicleStatus
from backoffice.models.lead import Lead, LeadChannel, LeadLanguage, LeadStage, NoteEntry, NoteType
from backoffice.models.notification import Notification
from backoffice.models.staff import Dealership, Staff
from backoffice.services import audit_service, notification_service

logger = logging.getLogger(__name__)


PATCH_FIELDS = ("stage", "owner_id", "owner_name", "dealership_id", "dealership_name", "name")

# Lead field -> Appointment field kept in sync on every open appointment
APPOINTMENT_MIRROR = {
    "owner_id": "owner_id",
    "stage": "stage",
    "name": "lead_name",
}


@dataclass
class CascadeResult:
    lead: Optional[Lead] = None
    changes: Dict[str, Tuple[Any, Any]] = field(default_factory=dict)
    appointments_updated: int = 0
    appointment: Optional[Appointment] = None
    note: Optional[NoteEntry] = None
    notifications: List[Notification] = field(default_factory=list)
    warnings: List[SideEffectFailed] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.changes)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning("Concurrent write detected during %s", action)
        raise ConcurrentModification(f"Could not save {action}: it was changed by someone else") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Commit failed during %s", action)
        raise CommitFailed(f"Could not save {action}: {e.__class__.__name__}") from e


def _get_lead(db: Session, lead_id: str) -> Lead:
    lead = db.query(Lead).filter(Lead.id == lead_id).first()
    if not lead:
        raise NotFound(f"Lead {lead_id} not found")
    return lead


def _get_staff(db: Session, staff_id: str) -> Staff:
    staff = db.query(Staff).filter(Staff.id == staff_id).first()
    if not staff:
        raise NotFound(f"Staff member {staff_id} not found")
    return staff


def _get_dealership(db: Session, dealership_id: str) -> Dealership:
    dealership = db.query(Dealership).filter(Dealership.id == dealership_id).first()
    if not dealership:
        raise NotFound(f"Dealership {dealership_id} not found")
    return dealership


def _parse_stage(value: Any) -> LeadStage:
    try:
        return LeadStage(value)
    except ValueError:
        raise ValidationError(f"Unknown stage: {value}")


def open_appointments(db: Session, lead_id: str, now: Optional[datetime] = None) -> List[Appointment]:
    """Appointments of a lead whose end time has not passed"""
    now = now or datetime.utcnow()
    return db.query(Appointment).filter(
        Appointment.lead_id == lead_id,
        Appointment.end_time >= now
    ).order_by(Appointment.start_time).all()


def _record_safely(
    db: Session,
    result: CascadeResult,
    lead_id: str,
    content: str,
    author: str,
    note_type: NoteType
) -> None:
    try:
        result.note = audit_service.record(db, lead_id, content, author, note_type)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Audit entry for lead %s was not written", lead_id)
        result.warnings.append(SideEffectFailed(effect="audit", detail=str(e)))


def _notify_safely(
    db: Session,
    result: CascadeResult,
    user_id: str,
    lead: Lead,
    message: str,
    author: str
) -> None:
    try:
        result.notifications.append(notification_service.notify(db, user_id, lead, message, author))
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Notification to %s for lead %s was not written", user_id, lead.id)
        result.warnings.append(SideEffectFailed(effect="notification", detail=str(e), recipient_id=user_id))


def _resolve_patch(db: Session, lead: Lead, patch: Dict[str, Any], actor: Actor) -> Dict[str, Any]:
    """Validate a raw patch and return the full set of target values"""
    if not patch:
        raise ValidationError("Patch must contain at least one field")

    unknown = set(patch) - set(PATCH_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be changed through a lead mutation: {', '.join(sorted(unknown))}")

    for key, value in patch.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(f"{key} cannot be empty")

    resolved: Dict[str, Any] = {}

    if "stage" in patch:
        stage = _parse_stage(patch["stage"])
        # Role gate applies even when the stage would not actually change
        if not actor.can_transition_to(stage):
            raise PermissionDenied(f"{actor.role.value} cannot move a lead to '{stage.value}'")
        if stage == LeadStage.GANADO and not lead.interested_vehicle_id:
            raise ValidationError("Link a vehicle of interest before marking the lead as won")
        resolved["stage"] = stage

    if "owner_name" in patch and "owner_id" not in patch:
        raise ValidationError("owner_name can only change together with owner_id")
    if "owner_id" in patch:
        owner = _get_staff(db, patch["owner_id"])
        resolved["owner_id"] = owner.id
        resolved["owner_name"] = owner.name

    if "dealership_name" in patch and "dealership_id" not in patch:
        raise ValidationError("dealership_name can only change together with dealership_id")
    if "dealership_id" in patch:
        dealership = _get_dealership(db, patch["dealership_id"])
        resolved["dealership_id"] = dealership.id
        resolved["dealership_name"] = dealership.name

    if "name" in patch:
        resolved["name"] = patch["name"].strip()

    return resolved


def _describe_changes(changes: Dict[str, Tuple[Any, Any]], actor: Actor) -> Tuple[str, NoteType]:
    sentences = []
    note_type = NoteType.SYSTEM

    if "stage" in changes:
        old, new = changes["stage"]
        sentences.append(f"Stage changed from '{old.value}' to '{new.value}' by {actor.name}.")
        note_type = NoteType.STAGE_CHANGE

    if "owner_id" in changes or "owner_name" in changes:
        old, new = changes["owner_name"] if "owner_name" in changes else changes["owner_id"]
        sentences.append(f"Owner changed from '{old}' to '{new}' by {actor.name}.")
        if note_type == NoteType.SYSTEM:
            note_type = NoteType.OWNER_CHANGE

    if "dealership_id" in changes or "dealership_name" in changes:
        old, new = changes.get("dealership_name", changes.get("dealership_id"))
        sentences.append(f"Dealership changed from '{old}' to '{new}' by {actor.name}.")
        if note_type == NoteType.SYSTEM:
            note_type = NoteType.DEALERSHIP_CHANGE

    if "name" in changes:
        old, new = changes["name"]
        sentences.append(f"Name changed from '{old}' to '{new}' by {actor.name}.")

    return " ".join(sentences), note_type


def apply_lead_mutation(
    db: Session,
    lead_id: str,
    patch: Dict[str, Any],
    actor: Actor,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None
) -> CascadeResult:
    """
    Apply a stage / owner / dealership / name change to a lead and its open
    appointments in one commit.

    Raises ValidationError (or a subclass) before any write, and CommitFailed if
    the store rejects the commit. With expected_version set, a lead whose version
    differs raises ConcurrentModification. The UPDATE itself is guarded by the
    version read here, so a write that lands between this read and the commit
    also raises ConcurrentModification.
    """
    lead = _get_lead(db, lead_id)
    target = _resolve_patch(db, lead, patch, actor)

    if expected_version is not None and lead.version != expected_version:
        raise ConcurrentModification(
            f"Lead {lead_id} is at version {lead.version}, expected {expected_version}"
        )

    changes = {}
    for key, value in target.items():
        current = getattr(lead, key)
        if current != value:
            changes[key] = (current, value)

    result = CascadeResult(lead=lead)
    if not changes:
        return result

    now = now or datetime.utcnow()
    appointments = open_appointments(db, lead.id, now)
    old_owner_id = lead.owner_id

    # Everything the mutation reads is loaded before the first attribute is set
    closing_owner = None
    vehicle = None
    if changes.get("stage", (None, None))[1] == LeadStage.GANADO:
        closing_owner = _get_staff(db, target.get("owner_id", lead.owner_id))
        vehicle = db.query(Vehicle).filter(Vehicle.id == lead.interested_vehicle_id).first()
        if vehicle and vehicle.status == VehicleStatus.SOLD and vehicle.sold_by != closing_owner.id:
            raise ValidationError(f"Vehicle {vehicle.id} was already sold on another lead")

    for key, (_, value) in changes.items():
        setattr(lead, key, value)
    lead.last_activity = now

    for appointment in appointments:
        for lead_field, appointment_field in APPOINTMENT_MIRROR.items():
            if lead_field in changes:
                setattr(appointment, appointment_field, getattr(lead, lead_field))

    if closing_owner is not None:
        lead.broker_commission = (
            closing_owner.commission if closing_owner.commission is not None
            else settings.DEFAULT_BROKER_COMMISSION
        )
        if vehicle:
            vehicle.status = VehicleStatus.SOLD
            vehicle.sold_by = closing_owner.id
            vehicle.sold_at = now

    _commit(db, f"lead {lead.id}")
    db.refresh(lead)

    result.changes = changes
    result.appointments_updated = len(appointments)
    logger.info(
        "Lead %s updated by %s (%s); %d open appointment(s) synced",
        lead.id, actor.id, ", ".join(sorted(changes)), len(appointments)
    )

    content, note_type = _describe_changes(changes, actor)
    _record_safely(db, result, lead.id, content, actor.name, note_type)

    if "owner_id" in changes:
        new_owner_id = lead.owner_id
        for user_id in notification_service.reassignment_recipients(new_owner_id, old_owner_id, actor.id):
            if user_id == new_owner_id:
                message = f"You have been assigned a new lead: {lead.name}."
            else:
                message = f"Lead {lead.name} was reassigned to {lead.owner_name}."
            _notify_safely(db, result, user_id, lead, message, actor.name)
    elif "stage" in changes and lead.owner_id != actor.id:
        message = f"Stage for lead {lead.name} was changed to {lead.stage.value} by {actor.name}."
        _notify_safely(db, result, lead.owner_id, lead, message, actor.name)

    return result


def create_lead(
    db: Session,
    actor: Actor,
    name: str,
    phone: str,
    owner_id: str,
    dealership_id: str,
    email: Optional[str] = None,
    channel: LeadChannel = LeadChannel.OTHER,
    language: LeadLanguage = LeadLanguage.SPANISH,
    stage: LeadStage = LeadStage.NUEVO,
    interested_vehicle_id: Optional[str] = None,
    initial_notes: Optional[str] = None
) -> CascadeResult:
    """Create a lead with its name caches resolved from the store"""
    if not name or not name.strip():
        raise ValidationError("Lead name is required")
    if not phone or not phone.strip():
        raise ValidationError("Lead phone is required")

    stage = _parse_stage(stage)
    if not actor.can_transition_to(stage):
        raise PermissionDenied(f"{actor.role.value} cannot create a lead in '{stage.value}'")
    if stage == LeadStage.GANADO and not interested_vehicle_id:
        raise ValidationError("Link a vehicle of interest before marking the lead as won")

    owner = _get_staff(db, owner_id)
    dealership = _get_dealership(db, dealership_id)

    now = datetime.utcnow()
    lead = Lead(
        name=name.strip(),
        phone=phone.strip(),
        email=email,
        channel=channel,
        language=language,
        stage=stage,
        owner_id=owner.id,
        owner_name=owner.name,
        dealership_id=dealership.id,
        dealership_name=dealership.name,
        interested_vehicle_id=interested_vehicle_id,
        created_at=now,
        last_activity=now
    )
    db.add(lead)
    _commit(db, "new lead")
    db.refresh(lead)

    result = CascadeResult(lead=lead)
    _record_safely(db, result, lead.id, "Lead created.", actor.name, NoteType.SYSTEM)
    if initial_notes and initial_notes.strip():
        _record_safely(db, result, lead.id, initial_notes.strip(), actor.name, NoteType.MANUAL)
    return result


def create_appointment(
    db: Session,
    lead_id: str,
    start_time: datetime,
    end_time: datetime,
    actor: Actor
) -> CascadeResult:
    """Schedule an appointment born in sync with its lead"""
    if end_time <= start_time:
        raise ValidationError("Appointment must end after it starts")

    lead = _get_lead(db, lead_id)
    appointment = Appointment(
        lead_id=lead.id,
        lead_name=lead.name,
        owner_id=lead.owner_id,
        stage=lead.stage,
        start_time=start_time,
        end_time=end_time
    )
    db.add(appointment)
    lead.last_activity = datetime.utcnow()
    _commit(db, f"appointment for lead {lead.id}")
    db.refresh(appointment)

    result = CascadeResult(lead=lead, appointment=appointment)
    content = f"Appointment scheduled for {start_time:%Y-%m-%d %H:%M} by {actor.name}."
    _record_safely(db, result, lead.id, content, actor.name, NoteType.SYSTEM)
    return result


def reschedule_appointment(
    db: Session,
    appointment_id: str,
    start_time: datetime,
    end_time: datetime,
    actor: Actor
) -> CascadeResult:
    """Move an appointment. Mirror fields are left to the lead cascade."""
    if end_time <= start_time:
        raise ValidationError("Appointment must end after it starts")

    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if not appointment:
        raise NotFound(f"Appointment {appointment_id} not found")

    old_start = appointment.start_time
    appointment.start_time = start_time
    appointment.end_time = end_time
    _commit(db, f"appointment {appointment.id}")
    db.refresh(appointment)

    result = CascadeResult(lead=appointment.lead, appointment=appointment)
    content = (
        f"Appointment moved from {old_start:%Y-%m-%d %H:%M} "
        f"to {start_time:%Y-%m-%d %H:%M} by {actor.name}."
    )
    _record_safely(db, result, appointment.lead_id, content, actor.name, NoteType.SYSTEM)
    return result


def link_vehicle(db: Session, lead_id: str, vehicle_id: str, actor: Actor) -> CascadeResult:
    """Attach a vehicle of interest to a lead"""
    lead = _get_lead(db, lead_id)
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise NotFound(f"Vehicle {vehicle_id} not found")
    if vehicle.status == VehicleStatus.SOLD:
        raise ValidationError(f"Vehicle {vehicle_id} is already sold")

    old_vehicle_id = lead.interested_vehicle_id
    result = CascadeResult(lead=lead)
    if old_vehicle_id == vehicle.id:
        return result

    lead.interested_vehicle_id = vehicle.id
    lead.last_activity = datetime.utcnow()
    _commit(db, f"vehicle link for lead {lead.id}")
    db.refresh(lead)

    result.changes = {"interested_vehicle_id": (old_vehicle_id, vehicle.id)}
    label = " ".join(str(part) for part in (vehicle.make, vehicle.model, vehicle.year) if part)
    _record_safely(db, result, lead.id, f"Vehicle {label} linked by {actor.name}.", actor.name, NoteType.VEHICLE_LINK)
    return result


def delete_lead(db: Session, lead_id: str, actor: Actor) -> int:
    """
    Hard-delete a lead together with its appointments.

    Note history is left in place and keeps pointing at the deleted id.
    Returns the number of appointments removed.
    """
    if not actor.can_delete():
        raise PermissionDenied(f"{actor.role.value} cannot delete leads")

    lead = _get_lead(db, lead_id)
    removed = len(lead.appointments)
    db.delete(lead)
    _commit(db, f"deletion of lead {lead_id}")

    logger.info("Lead %s deleted by %s with %d appointment(s)", lead_id, actor.id, removed)
    return removed


def propagate_staff_rename(db: Session, staff_id: str, new_name: str, actor: Actor) -> int:
    """Rename a staff member and rewrite every lead's owner_name in the same commit"""
    if not actor.can_manage_staff():
        raise PermissionDenied(f"{actor.role.value} cannot rename staff")
    if not new_name or not new_name.strip():
        raise ValidationError("Staff name cannot be empty")

    staff = _get_staff(db, staff_id)
    staff.name = new_name.strip()
    rewritten = db.query(Lead).filter(Lead.owner_id == staff.id).update(
        {Lead.owner_name: staff.name}, synchronize_session="fetch"
    )
    _commit(db, f"rename of staff {staff_id}")

    logger.info("Staff %s renamed; %d lead owner cache(s) rewritten", staff_id, rewritten)
    return rewritten


def propagate_dealership_rename(db: Session, dealership_id: str, new_name: str, actor: Actor) -> int:
    """Rename a dealership and rewrite every lead's dealership_name in the same commit"""
    if not actor.can_manage_staff():
        raise PermissionDenied(f"{actor.role.value} cannot rename dealerships")
    if not new_name or not new_name.strip():
        raise ValidationError("Dealership name cannot be empty")

    dealership = _get_dealership(db, dealership_id)
    dealership.name = new_name.strip()
    rewritten = db.query(Lead).filter(Lead.dealership_id == dealership.id).update(
        {Lead.dealership_name: dealership.name}, synchronize_session="fetch"
    )
    _commit(db, f"rename of dealership {dealership_id}")

    logger.info("Dealership %s renamed; %d lead cache(s) rewritten", dealership_id, rewritten)
    return rewritten
