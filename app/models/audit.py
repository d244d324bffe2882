import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, JSON, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class AuditAction(enum.Enum):
    upload = "UPLOAD"
    version_update = "VERSION_UPDATE"
    approve = "APPROVE"
    reject = "REJECT"
    archive = "ARCHIVE"
    delete = "DELETE"
    login = "LOGIN"
    logout = "LOGOUT"
    badge_earned = "BADGE_EARNED"
    compliance_flag = "COMPLIANCE_FLAG"
    duplicate_detected = "DUPLICATE_DETECTED"


class AuditTargetType(enum.Enum):
    document = "Document"
    user = "User"
    system = "System"


class AuditLog(Base):
    """Append-only record; rows are never updated or deleted."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_actor_id", "actor_id"),
        Index("ix_audit_logs_action", "action"),
        Index("ix_audit_logs_target_id", "target_id"),
        Index("ix_audit_logs_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Plain id, no FK: entries outlive the users and documents they mention
    actor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    actor_name: Mapped[str] = mapped_column(String(200), nullable=False, default="System")
    actor_role: Mapped[str] = mapped_column(String(80), nullable=False, default="System")
    action: Mapped[AuditAction] = mapped_column(Enum(AuditAction), nullable=False)
    target_id: Mapped[str] = mapped_column(String(500), nullable=False)
    target_type: Mapped[AuditTargetType] = mapped_column(
        Enum(AuditTargetType), nullable=False, default=AuditTargetType.document
    )
    details: Mapped[str | None] = mapped_column(Text)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
