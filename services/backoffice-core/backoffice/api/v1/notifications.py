"""
Notifications API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from backoffice.api.v1.deps import get_actor
from backoffice.core.actor import Actor
from backoffice.core.database import get_db
from backoffice.services import notification_service

router = APIRouter()


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    content: str
    author: str
    lead_id: Optional[str]
    lead_name: Optional[str]
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    limit: int = 50,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    """Notification feed of the acting staff member"""
    return notification_service.list_for_user(db, actor.id, unread_only=unread_only, limit=limit)


@router.post("/read-all")
async def mark_all_notifications_read(
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    updated = notification_service.mark_all_read(db, actor.id)
    return {"updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db)
):
    return notification_service.mark_read(db, notification_id, actor.id)
