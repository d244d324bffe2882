import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, JSON, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base


class ScoreAction(enum.Enum):
    upload = "UPLOAD"
    approval = "APPROVAL"
    review = "REVIEW"
    like_received = "LIKE_RECEIVED"
    comment = "COMMENT"
    training_complete = "TRAINING_COMPLETE"


class LeaderboardPeriod(enum.Enum):
    all_time = "allTime"
    weekly = "weekly"
    monthly = "monthly"


# ---------------------------------------------------------------------------
# Score history (one row per award, append-only)
# ---------------------------------------------------------------------------


class ScoreEvent(Base):
    __tablename__ = "score_events"
    __table_args__ = (
        Index("ix_score_events_user_id", "user_id"),
        Index("ix_score_events_user_action", "user_id", "action"),
        Index("ix_score_events_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    action: Mapped[ScoreAction] = mapped_column(Enum(ScoreAction), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500))
    document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="SET NULL")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


# ---------------------------------------------------------------------------
# Leaderboard snapshots (written by the periodic Celery task)
# ---------------------------------------------------------------------------


class LeaderboardSnapshot(Base):
    __tablename__ = "leaderboard_snapshots"
    __table_args__ = (
        Index("ix_leaderboard_snapshots_period_created", "period", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    period: Mapped[LeaderboardPeriod] = mapped_column(
        Enum(LeaderboardPeriod), nullable=False
    )
    period_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    period_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    rankings: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
