"""
Lead read side - visibility by role and stale lead reminders
"""
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Dict, List, Optional
import logging

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice.core.actor import Actor, Capability
from backoffice.core.config import settings
from backoffice.models.lead import Lead, LeadStage, OPEN_STAGES
from backoffice.models.notification import Notification
from backoffice.models.staff import Staff
from backoffice.services import notification_service

logger = logging.getLogger(__name__)

REMINDER_AUTHOR = "System"


def visible_leads(db: Session, actor: Actor, stage: Optional[LeadStage] = None) -> List[Lead]:
    """
    Leads the actor may see, most recently active first.

    Admin sees everything, a Supervisor sees their own leads plus their team's,
    a Broker sees only their own.
    """
    query = db.query(Lead)

    if actor.has(Capability.VIEW_ALL_LEADS):
        pass
    elif actor.has(Capability.VIEW_TEAM_LEADS):
        team_ids = db.query(Staff.id).filter(Staff.supervisor_id == actor.id)
        query = query.filter(or_(Lead.owner_id == actor.id, Lead.owner_id.in_(team_ids)))
    else:
        query = query.filter(Lead.owner_id == actor.id)

    if stage is not None:
        query = query.filter(Lead.stage == LeadStage(stage))

    return query.order_by(Lead.last_activity.desc()).all()


def find_stale_leads(db: Session, now: Optional[datetime] = None) -> Dict[str, List[Lead]]:
    """Open-stage leads untouched for LEAD_STALE_HOURS, grouped by owner id"""
    now = now or datetime.utcnow()
    cutoff = now - timedelta(hours=settings.LEAD_STALE_HOURS)

    leads = db.query(Lead).filter(
        Lead.stage.in_(OPEN_STAGES),
        Lead.last_activity < cutoff
    ).order_by(Lead.owner_id, Lead.last_activity).all()

    grouped: Dict[str, List[Lead]] = OrderedDict()
    for lead in leads:
        grouped.setdefault(lead.owner_id, []).append(lead)
    return grouped


def send_stale_lead_reminders(db: Session, now: Optional[datetime] = None) -> List[Notification]:
    """One reminder notification per owner who has stale leads"""
    sent = []
    for owner_id, leads in find_stale_leads(db, now).items():
        if len(leads) == 1:
            message = f"Lead {leads[0].name} has had no activity in the last {settings.LEAD_STALE_HOURS} hours."
        else:
            message = (
                f"You have {len(leads)} leads with no activity in the last "
                f"{settings.LEAD_STALE_HOURS} hours."
            )
        lead = leads[0] if len(leads) == 1 else None
        try:
            sent.append(notification_service.notify(db, owner_id, lead, message, REMINDER_AUTHOR))
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Stale lead reminder for %s was not written", owner_id)

    logger.info("Sent %d stale lead reminder(s)", len(sent))
    return sent
