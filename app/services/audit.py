import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import ValidationError
from app.models.audit import AuditAction, AuditLog, AuditTargetType
from app.models.user import User
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _parse_action(action: str) -> AuditAction:
    try:
        return AuditAction(action)
    except ValueError:
        raise ValidationError(f"Invalid action: {action}")


class AuditTrail(ListResponseMixin):
    """Append-only audit sink.

    Writes go through a savepoint. With ``AUDIT_FAIL_CLOSED`` unset a failed
    write is logged and the caller's transaction carries on; otherwise the
    error propagates and aborts the caller.
    """

    @staticmethod
    def record(
        db: Session,
        actor: User | None,
        action: AuditAction,
        target_id,
        target_type: AuditTargetType = AuditTargetType.document,
        details: str | None = None,
        metadata: dict | None = None,
    ) -> AuditLog | None:
        entry = AuditLog(
            actor_id=actor.id if actor else None,
            actor_name=actor.name if actor else "System",
            actor_role=actor.role.value if actor else "System",
            action=action,
            target_id=str(target_id),
            target_type=target_type,
            details=details,
            metadata_=metadata,
        )
        try:
            with db.begin_nested():
                db.add(entry)
        except SQLAlchemyError:
            if settings.audit_fail_closed:
                raise
            logger.exception(
                "Failed to write audit entry %s for %s", action.value, target_id
            )
            return None
        logger.debug("Audit %s on %s by %s", action.value, target_id, entry.actor_name)
        return entry

    @staticmethod
    def for_target(db: Session, target_id) -> list[AuditLog]:
        return (
            db.query(AuditLog)
            .filter(AuditLog.target_id == str(target_id))
            .order_by(AuditLog.created_at.desc())
            .all()
        )

    @staticmethod
    def list(
        db: Session,
        actor_id: str | None,
        action: str | None,
        target_id: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[AuditLog]:
        query = db.query(AuditLog)
        if actor_id is not None:
            query = query.filter(AuditLog.actor_id == coerce_uuid(actor_id))
        if action is not None:
            query = query.filter(AuditLog.action == _parse_action(action))
        if target_id is not None:
            query = query.filter(AuditLog.target_id == target_id)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": AuditLog.created_at},
        )
        return apply_pagination(query, limit, offset).all()


audit_trail = AuditTrail()
