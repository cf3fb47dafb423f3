from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from .. import models


def add_notification(db: Session, user_id: int, type: str, title: str, message: str,
                     data: Optional[Dict[str, Any]] = None) -> models.Notification:
    """
    Stages a notification on the session without committing, so it lands in the
    caller's transaction.
    """
    db_notification = models.Notification(
        user_id=user_id, type=type, title=title, message=message, data=data, is_read=False
    )
    db.add(db_notification)
    return db_notification


def create_notification(db: Session, user_id: int, type: str, title: str, message: str,
                        data: Optional[Dict[str, Any]] = None) -> models.Notification:
    db_notification = add_notification(db, user_id, type, title, message, data)
    db.commit()
    db.refresh(db_notification)
    return db_notification


def list_notifications(db: Session, user_id: int, page: int = 1, limit: int = 20,
                       type: Optional[str] = None, is_read: Optional[bool] = None
                       ) -> Tuple[List[models.Notification], int]:
    query = db.query(models.Notification).filter(models.Notification.user_id == user_id)
    if type:
        query = query.filter(models.Notification.type == type)
    if is_read is not None:
        query = query.filter(models.Notification.is_read == is_read)

    total_count = query.count()
    notifications = (
        query.order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return notifications, total_count


def mark_notifications_read(db: Session, user_id: int, notification_ids: List[int]) -> int:
    if not notification_ids:
        return 0
    updated = (
        db.query(models.Notification)
        .filter(
            models.Notification.user_id == user_id,
            models.Notification.id.in_(notification_ids),
            models.Notification.is_read.is_(False),
        )
        .update({models.Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def count_unread(db: Session, user_id: int) -> int:
    return (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id, models.Notification.is_read.is_(False))
        .count()
    )
