from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models.notification import Notification, NotificationType
from app.models.user import User, UserRole
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _parse_type(notification_type: str) -> NotificationType:
    try:
        return NotificationType(notification_type)
    except ValueError:
        raise ValidationError(f"Invalid notification type: {notification_type}")


def _require_user(db: Session, user_id) -> User:
    user = db.get(User, coerce_uuid(user_id))
    if not user:
        raise NotFoundError("User not found")
    return user


class NotificationSink:
    """Fan-out inserts.

    Rows are added to the caller's session and flushed; committing is left to
    the caller so a fan-out shares the caller's side-effect boundary.
    """

    @staticmethod
    def notify(
        db: Session,
        user_id,
        notification_type: NotificationType,
        title: str,
        message: str,
        document_id=None,
    ) -> Notification:
        notification = Notification(
            user_id=coerce_uuid(user_id),
            notification_type=notification_type,
            title=title,
            message=message,
            document_id=coerce_uuid(document_id) if document_id else None,
        )
        db.add(notification)
        db.flush()
        return notification

    @staticmethod
    def _fan_out(
        db: Session,
        recipients: list[User],
        notification_type: NotificationType,
        title: str,
        message: str,
        document_id=None,
    ) -> int:
        doc_id = coerce_uuid(document_id) if document_id else None
        db.add_all(
            [
                Notification(
                    user_id=user.id,
                    notification_type=notification_type,
                    title=title,
                    message=message,
                    document_id=doc_id,
                )
                for user in recipients
            ]
        )
        db.flush()
        return len(recipients)

    @classmethod
    def notify_by_role(
        cls,
        db: Session,
        role: UserRole,
        notification_type: NotificationType,
        title: str,
        message: str,
        document_id=None,
    ) -> int:
        recipients = (
            db.query(User)
            .filter(User.role == role, User.is_active.is_(True))
            .all()
        )
        count = cls._fan_out(
            db, recipients, notification_type, title, message, document_id
        )
        logger.info(
            "Sent %s to %d users with role %s",
            notification_type.value,
            count,
            role.value,
        )
        return count

    @classmethod
    def notify_all(
        cls,
        db: Session,
        notification_type: NotificationType,
        title: str,
        message: str,
        document_id=None,
    ) -> int:
        recipients = db.query(User).filter(User.is_active.is_(True)).all()
        count = cls._fan_out(
            db, recipients, notification_type, title, message, document_id
        )
        logger.info("Broadcast %s to %d users", notification_type.value, count)
        return count


class Notifications(ListResponseMixin):
    @staticmethod
    def get(db: Session, notification_id: str) -> Notification:
        notification = db.get(Notification, coerce_uuid(notification_id))
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    @staticmethod
    def list(
        db: Session,
        user_id: str | None,
        notification_type: str | None,
        is_read: bool | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> List[Notification]:
        query = db.query(Notification)
        if user_id is not None:
            query = query.filter(Notification.user_id == coerce_uuid(user_id))
        if notification_type is not None:
            query = query.filter(
                Notification.notification_type == _parse_type(notification_type)
            )
        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)
        if is_active is None:
            query = query.filter(Notification.is_active.is_(True))
        else:
            query = query.filter(Notification.is_active == is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Notification.created_at},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def mark_read(db: Session, notification_ids: List[str]) -> int:
        now = datetime.now(timezone.utc)
        count = 0
        for nid in notification_ids:
            notification = db.get(Notification, coerce_uuid(nid))
            if notification and not notification.is_read:
                notification.is_read = True
                notification.read_at = now
                count += 1
        db.commit()
        logger.info("Marked %d notifications as read", count)
        return count

    @staticmethod
    def _unread_query(db: Session, user_id):
        return db.query(Notification).filter(
            Notification.user_id == coerce_uuid(user_id),
            Notification.is_read.is_(False),
            Notification.is_active.is_(True),
        )

    @classmethod
    def mark_all_read(cls, db: Session, user_id: str) -> int:
        _require_user(db, user_id)
        now = datetime.now(timezone.utc)
        unread = cls._unread_query(db, user_id).all()
        for n in unread:
            n.is_read = True
            n.read_at = now
        db.commit()
        logger.info(
            "Marked all %d notifications as read for user %s", len(unread), user_id
        )
        return len(unread)

    @classmethod
    def unread_count(cls, db: Session, user_id: str) -> int:
        _require_user(db, user_id)
        return cls._unread_query(db, user_id).count()

    @staticmethod
    def dismiss(db: Session, notification_id: str) -> None:
        notification = db.get(Notification, coerce_uuid(notification_id))
        if not notification:
            raise NotFoundError("Notification not found")
        notification.is_active = False
        db.commit()
        logger.info("Dismissed notification %s", notification_id)


notification_sink = NotificationSink()
notifications = Notifications()
