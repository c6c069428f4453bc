"""
Staff notification dispatcher
"""
from sqlalchemy.orm import Session
from typing import List, Optional

from backoffice.core.errors import NotFound
from backoffice.models.lead import Lead
from backoffice.models.notification import Notification


def notify(
    db: Session,
    user_id: str,
    lead: Optional[Lead],
    message: str,
    author_name: str
) -> Notification:
    """Create one unread notification for a staff member"""
    notification = Notification(
        user_id=user_id,
        lead_id=lead.id if lead is not None else None,
        lead_name=lead.name if lead is not None else None,
        content=message,
        author=author_name,
        read=False
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def reassignment_recipients(
    new_owner_id: Optional[str],
    old_owner_id: Optional[str],
    actor_id: str
) -> List[str]:
    """
    Recipients of an owner reassignment: {new owner} ∪ {old owner} minus the actor.

    New owner comes first; duplicates and empty ids are dropped.
    """
    recipients = []
    for user_id in (new_owner_id, old_owner_id):
        if user_id and user_id != actor_id and user_id not in recipients:
            recipients.append(user_id)
    return recipients


def list_for_user(db: Session, user_id: str, unread_only: bool = False, limit: int = 50) -> List[Notification]:
    """Notification feed for a staff member, newest first"""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.created_at.desc()).limit(limit).all()


def mark_read(db: Session, notification_id: str, user_id: str) -> Notification:
    """Mark a notification read. Only the recipient may do this."""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id
    ).first()
    if not notification:
        raise NotFound(f"Notification {notification_id} not found")

    if not notification.read:
        notification.read = True
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    """Mark every unread notification of a staff member read"""
    updated = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read.is_(False)
    ).update({Notification.read: True}, synchronize_session=False)
    db.commit()
    return updated
