from typing import Any, List, Optional

from sqlalchemy import select

from kiosk_pop.db.models import Notification
from kiosk_pop.db.repositories.base import Repository


class NotificationsRepository(Repository):
    def create(
        self,
        *,
        org_id: str,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            org_id=org_id,
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=data or {},
            read=False,
        )
        return self.save(notification)

    def list(self, *, org_id: str, user_id: str, unread_only: bool = False) -> List[Notification]:
        stmt = select(Notification).where(Notification.org_id == org_id, Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc())
        return list(self.session.scalars(stmt).all())

    def mark_read(self, *, org_id: str, user_id: str, notification_id: str) -> Optional[Notification]:
        stmt = select(Notification).where(
            Notification.org_id == org_id,
            Notification.user_id == user_id,
            Notification.id == notification_id,
        )
        notification = self.session.scalars(stmt).first()
        if not notification:
            return None
        notification.read = True
        self.session.commit()
        self.session.refresh(notification)
        return notification
