from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.common import ListResponse
from app.schemas.notification import (
    MarkAllReadRequest,
    MarkReadRequest,
    NotificationRead,
    UnreadCountResponse,
)
from app.services.notification import notifications

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(user_id: str = Query(...), db: Session = Depends(get_db)):
    count = notifications.unread_count(db, user_id)
    return {"count": count}


@router.get("", response_model=ListResponse[NotificationRead])
def list_notifications(
    user_id: str | None = None,
    notification_type: str | None = Query(default=None, alias="type"),
    is_read: bool | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=25, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return notifications.list_response(
        db,
        user_id,
        notification_type,
        is_read,
        is_active,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.post("/mark-read")
def mark_read(payload: MarkReadRequest, db: Session = Depends(get_db)):
    count = notifications.mark_read(db, [str(nid) for nid in payload.notification_ids])
    return {"marked": count}


@router.post("/mark-all-read")
def mark_all_read(payload: MarkAllReadRequest, db: Session = Depends(get_db)):
    count = notifications.mark_all_read(db, str(payload.user_id))
    return {"marked": count}


@router.get("/{notification_id}", response_model=NotificationRead)
def get_notification(notification_id: str, db: Session = Depends(get_db)):
    return notifications.get(db, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def dismiss_notification(notification_id: str, db: Session = Depends(get_db)):
    notifications.dismiss(db, notification_id)
