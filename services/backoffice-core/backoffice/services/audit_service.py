"""
Lead audit trail (note history) service
"""
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime

from backoffice.core.actor import Actor
from backoffice.core.errors import NotFound, ValidationError
from backoffice.models.lead import Lead, NoteEntry, NoteType


def record(
    db: Session,
    lead_id: str,
    content: str,
    author: str,
    note_type: NoteType = NoteType.SYSTEM,
    date: Optional[datetime] = None
) -> NoteEntry:
    """
    Append one note entry to a lead's history.

    Every call inserts a new row in its own commit; existing entries are never
    read back, edited or merged, so concurrent writers on the same lead each get
    their own entry.
    """
    entry = NoteEntry(
        lead_id=lead_id,
        content=content,
        author=author,
        type=note_type,
        date=date or datetime.utcnow()
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def history(db: Session, lead_id: str) -> List[NoteEntry]:
    """Note history for a lead, newest first. Works for deleted leads too."""
    return db.query(NoteEntry).filter(
        NoteEntry.lead_id == lead_id
    ).order_by(NoteEntry.date.desc()).all()


def add_manual_note(db: Session, lead_id: str, content: str, actor: Actor) -> NoteEntry:
    """Record a user-written note and mark the lead as recently active"""
    if not content or not content.strip():
        raise ValidationError("Note content cannot be empty")

    lead = db.query(Lead).filter(Lead.id == lead_id).first()
    if not lead:
        raise NotFound(f"Lead {lead_id} not found")

    now = datetime.utcnow()
    lead.last_activity = now
    return record(db, lead_id, content.strip(), actor.name, NoteType.MANUAL, date=now)
