from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import NotificationKind
from ..core.errors import RecordNotFound
from ..models.models import Notification

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify(
        self,
        user_id: str,
        *,
        title: str,
        message: str,
        kind: NotificationKind = NotificationKind.INFO,
        link_url: Optional[str] = None,
    ) -> None: ...


class SqlNotificationSink:
    """Stores in-app notifications. Delivery is fire-and-forget for callers."""

    def __init__(self, session: Session, building_id: Optional[str] = None) -> None:
        self.session = session
        self.building_id = building_id

    def notify(
        self,
        user_id: str,
        *,
        title: str,
        message: str,
        kind: NotificationKind = NotificationKind.INFO,
        link_url: Optional[str] = None,
    ) -> None:
        if not user_id:
            logger.debug("Skipping notification %r with no recipient", title)
            return
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            kind=NotificationKind(kind).value,
            building_id=self.building_id,
            link_url=link_url,
            created_at=datetime.now(timezone.utc),
        )
        try:
            self.session.add(notification)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.exception("Failed to store notification for user %s", user_id)


def list_notifications(session: Session, user_id: str, unread_only: bool = False) -> List[Notification]:
    query = session.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read_at.is_(None))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def mark_read(session: Session, user_id: str, notification_id: int) -> Notification:
    notification = (
        session.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .one_or_none()
    )
    if notification is None:
        raise RecordNotFound("notifications", str(notification_id))
    if notification.read_at is None:
        notification.read_at = datetime.now(timezone.utc)
        session.add(notification)
        session.commit()
    return notification


def mark_all_read(session: Session, user_id: str) -> int:
    now = datetime.now(timezone.utc)
    unread = (
        session.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
        .all()
    )
    for notification in unread:
        notification.read_at = now
        session.add(notification)
    session.commit()
    return len(unread)
