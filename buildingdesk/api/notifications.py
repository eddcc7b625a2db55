from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..api.dependencies import get_actor_id, get_db
from ..models.models import Notification
from ..schemas.schemas import NotificationRead
from ..services import notifications as notification_service

router = APIRouter()


@router.get("/", response_model=List[NotificationRead])
def list_notifications(
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_actor_id),
) -> List[Notification]:
    return notification_service.list_notifications(db, user_id, unread_only=unread_only)


@router.post("/read-all")
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_actor_id),
) -> dict:
    updated = notification_service.mark_all_read(db, user_id)
    return {"updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_actor_id),
) -> Notification:
    return notification_service.mark_read(db, user_id, notification_id)
