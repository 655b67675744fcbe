from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from kiosk_pop.auth.dependencies import AuthContext, get_current_user
from kiosk_pop.db.deps import get_session
from kiosk_pop.db.models import Notification
from kiosk_pop.db.repositories.notifications import NotificationsRepository
from kiosk_pop.schemas.proof_of_play import NotificationOut

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _to_out(notification: Notification) -> NotificationOut:
    return NotificationOut(
        id=notification.id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        data=notification.data or {},
        read=notification.read,
        createdAt=notification.created_at,
    )


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> list[NotificationOut]:
    repo = NotificationsRepository(session)
    return [_to_out(item) for item in repo.list(org_id=auth.org_id, user_id=auth.user_id, unread_only=unread_only)]


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> NotificationOut:
    repo = NotificationsRepository(session)
    notification = repo.mark_read(org_id=auth.org_id, user_id=auth.user_id, notification_id=notification_id)
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return _to_out(notification)
