"""
SQLAlchemy models
"""
from backoffice.models.staff import Staff, StaffRole, Dealership
from backoffice.models.inventory import Vehicle, VehicleStatus
from backoffice.models.lead import Lead, LeadStage, LeadChannel, LeadLanguage, NoteEntry, NoteType, OPEN_STAGES, CLOSING_STAGES
from backoffice.models.appointment import Appointment
from backoffice.models.notification import Notification
from backoffice.models.candidate import Candidate, PipelineStatus

__all__ = [
    "Staff",
    "StaffRole",
    "Dealership",
    "Vehicle",
    "VehicleStatus",
    "Lead",
    "LeadStage",
    "LeadChannel",
    "LeadLanguage",
    "NoteEntry",
    "NoteType",
    "OPEN_STAGES",
    "CLOSING_STAGES",
    "Appointment",
    "Notification",
    "Candidate",
    "PipelineStatus",
]
