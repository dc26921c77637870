from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.actors import Actor
from app.api.auth import get_current_actor
from app.database import get_db
from app.schemas.common import ok, page_of
from app.schemas.notification import NotificationOut
from app.services import notification_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
def list_notifications(
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    items, total, unread = notification_service.list_notifications(db, actor, unread_only, page, limit)
    body = page_of([NotificationOut.model_validate(n) for n in items], total, page, limit)
    body["unread_count"] = unread
    return ok(body)


@router.patch("/read-all")
def mark_all_read(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    count = notification_service.mark_all_read(db, actor)
    return ok({"updated": count}, message="All notifications marked as read")


@router.patch("/{notification_id}/read")
def mark_read(notification_id: str, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    n = notification_service.mark_read(db, actor, notification_id)
    return ok(NotificationOut.model_validate(n))


@router.delete("/{notification_id}")
def delete_notification(notification_id: str, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    notification_service.delete_notification(db, actor, notification_id)
    return ok(message="Notification deleted")
