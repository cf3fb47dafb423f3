import logging
import math
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..database import get_db_session
from ..security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/list", response_model=schemas.NotificationListResponse, summary="List Notifications")
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[str] = Query(None, max_length=32),
    is_read: Optional[Literal["true", "false"]] = Query(None, alias="isRead"),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    read_filter = None if is_read is None else is_read == "true"
    notifications, total_count = crud.notifications.list_notifications(
        db, user.id, page=page, limit=limit, type=type, is_read=read_filter
    )
    return {
        "notifications": notifications,
        "pagination": {
            "page": page,
            "limit": limit,
            "total_count": total_count,
            "total_pages": math.ceil(total_count / limit),
        },
    }


@router.post("/mark-read", response_model=schemas.NotificationsReadResponse, summary="Mark Notifications Read")
async def mark_notifications_read(
    payload: schemas.NotificationsReadRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    updated = crud.notifications.mark_notifications_read(db, user.id, payload.notification_ids)
    logger.info(f"User {user.id} marked {updated} notification(s) read")
    return {"success": True, "updated_count": updated}


@router.get("/unread-count", response_model=schemas.UnreadCountResponse, summary="Unread Notification Count")
async def unread_count(
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    return {"count": crud.notifications.count_unread(db, user.id)}
