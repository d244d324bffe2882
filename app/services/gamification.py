"""Points, badges and leaderboards.

Every award is a ``ScoreEvent`` row plus an atomic increment of
``User.score``. Badge predicates read cumulative counters derived from the
score history, so the history is the source of truth for upload, approval,
review and likes-received counts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models.gamification import (
    LeaderboardPeriod,
    LeaderboardSnapshot,
    ScoreAction,
    ScoreEvent,
)
from app.models.user import User, UserBadge
from app.observability import BADGES_AWARDED
from app.schemas.gamification import AwardResult
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)

POINT_VALUES: dict[ScoreAction, int] = {
    ScoreAction.upload: 10,
    ScoreAction.approval: 10,
    ScoreAction.review: 5,
    ScoreAction.like_received: 2,
    ScoreAction.comment: 1,
    ScoreAction.training_complete: 15,
}

POINTS_PER_LEVEL = 100
HISTORY_LIMIT = 20
SNAPSHOT_SIZE = 100


@dataclass(frozen=True)
class BadgeCounters:
    score: int = 0
    uploads: int = 0
    approvals: int = 0
    reviews: int = 0
    likes_received: int = 0


@dataclass(frozen=True)
class BadgeDefinition:
    name: str
    description: str
    icon: str
    earned: Callable[[BadgeCounters], bool]


BADGES: tuple[BadgeDefinition, ...] = (
    BadgeDefinition(
        "First Upload",
        "Completed first document upload",
        "📄",
        lambda c: c.score >= 10 or c.uploads >= 1,
    ),
    BadgeDefinition(
        "Rising Star",
        "Earned 50+ contribution points",
        "🌟",
        lambda c: c.score >= 50,
    ),
    BadgeDefinition(
        "Top Contributor",
        "Earned 100+ contribution points",
        "⭐",
        lambda c: c.score >= 100,
    ),
    BadgeDefinition(
        "Knowledge Guru",
        "Uploaded 10+ approved documents",
        "🎓",
        lambda c: c.approvals >= 10,
    ),
    BadgeDefinition(
        "Mentor",
        "Reviewed 20+ documents",
        "🏅",
        lambda c: c.reviews >= 20,
    ),
    BadgeDefinition(
        "Popular",
        "Received 50+ likes on documents",
        "❤️",
        lambda c: c.likes_received >= 50,
    ),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def period_window(
    period: LeaderboardPeriod, now: datetime | None = None
) -> tuple[datetime, datetime]:
    """Return the [start, end) window of the period containing ``now``."""
    now = now or _utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == LeaderboardPeriod.weekly:
        start = midnight - timedelta(days=midnight.weekday())
        return start, start + timedelta(days=7)
    if period == LeaderboardPeriod.monthly:
        start = midnight.replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
        return start, end
    raise ValidationError(f"Period {period.value} has no window")


def _parse_period(period) -> LeaderboardPeriod:
    if isinstance(period, LeaderboardPeriod):
        return period
    try:
        return LeaderboardPeriod(period)
    except ValueError:
        allowed = sorted(p.value for p in LeaderboardPeriod)
        raise ValidationError(f"Invalid period. Allowed: {allowed}")


def _leaderboard_user(user: User) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "department": user.department,
    }


def _dense_rank(rows: list[tuple[User, int, int]]) -> list[dict]:
    entries = []
    rank = 0
    previous = None
    for user, score, badge_count in rows:
        if score != previous:
            rank += 1
            previous = score
        entries.append(
            {
                "rank": rank,
                "user": _leaderboard_user(user),
                "score": score,
                "badge_count": badge_count,
            }
        )
    return entries


class Gamification:
    @staticmethod
    def _get_user(db: Session, user_id) -> User:
        user = db.get(User, coerce_uuid(user_id))
        if not user:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def counters(db: Session, user: User) -> BadgeCounters:
        rows = (
            db.query(ScoreEvent.action, func.count(ScoreEvent.id))
            .filter(ScoreEvent.user_id == user.id)
            .group_by(ScoreEvent.action)
            .all()
        )
        counts = {action: count for action, count in rows}
        return BadgeCounters(
            score=user.score,
            uploads=counts.get(ScoreAction.upload, 0),
            approvals=counts.get(ScoreAction.approval, 0),
            reviews=counts.get(ScoreAction.review, 0),
            likes_received=counts.get(ScoreAction.like_received, 0),
        )

    @classmethod
    def award_points(
        cls,
        db: Session,
        user_id,
        action: ScoreAction,
        description: str | None = None,
        document_id=None,
    ) -> AwardResult:
        user = cls._get_user(db, user_id)
        points = POINT_VALUES[action]
        db.execute(
            update(User)
            .where(User.id == user.id)
            .values(score=User.score + points)
            .execution_options(synchronize_session=False)
        )
        db.add(
            ScoreEvent(
                user_id=user.id,
                action=action,
                points=points,
                description=description,
                document_id=coerce_uuid(document_id) if document_id else None,
            )
        )
        db.flush()
        db.refresh(user)
        new_badges = cls.evaluate_badges(db, user.id)
        logger.info(
            "Awarded %d points (%s) to user %s, total %d",
            points,
            action.value,
            user.id,
            user.score,
        )
        return AwardResult(
            points_awarded=points, new_total=user.score, new_badges=new_badges
        )

    @classmethod
    def evaluate_badges(cls, db: Session, user_id) -> list[str]:
        """Award every badge whose threshold is met and return the new names.

        A badge already held is skipped; a concurrent award of the same badge
        hits the unique constraint and is treated as already held.
        """
        user = cls._get_user(db, user_id)
        held = {
            name
            for (name,) in db.query(UserBadge.name).filter(UserBadge.user_id == user.id)
        }
        counters = cls.counters(db, user)
        awarded = []
        for badge in BADGES:
            if badge.name in held or not badge.earned(counters):
                continue
            try:
                with db.begin_nested():
                    db.add(
                        UserBadge(
                            user_id=user.id,
                            name=badge.name,
                            description=badge.description,
                            icon=badge.icon,
                        )
                    )
            except IntegrityError:
                logger.warning("Badge %s already held by user %s", badge.name, user.id)
                continue
            awarded.append(badge.name)
            BADGES_AWARDED.labels(badge.name).inc()
            logger.info("Awarded badge %s to user %s", badge.name, user.id)
        if awarded:
            db.refresh(user)
        return awarded

    @staticmethod
    def _badge_counts(db: Session, user_ids: list) -> dict:
        if not user_ids:
            return {}
        rows = (
            db.query(UserBadge.user_id, func.count(UserBadge.id))
            .filter(UserBadge.user_id.in_(user_ids))
            .group_by(UserBadge.user_id)
            .all()
        )
        return dict(rows)

    @classmethod
    def _live_all_time(cls, db: Session, limit: int) -> list[dict]:
        users = (
            db.query(User)
            .filter(User.is_active.is_(True))
            .order_by(User.score.desc(), User.created_at.asc(), User.id.asc())
            .limit(limit)
            .all()
        )
        badges = cls._badge_counts(db, [u.id for u in users])
        return _dense_rank([(u, u.score, badges.get(u.id, 0)) for u in users])

    @classmethod
    def _live_window(
        cls, db: Session, start: datetime, end: datetime, limit: int
    ) -> list[dict]:
        total = func.sum(ScoreEvent.points).label("total")
        rows = (
            db.query(User, total)
            .join(ScoreEvent, ScoreEvent.user_id == User.id)
            .filter(
                User.is_active.is_(True),
                ScoreEvent.created_at >= start,
                ScoreEvent.created_at < end,
            )
            .group_by(User.id)
            .order_by(total.desc(), User.created_at.asc(), User.id.asc())
            .limit(limit)
            .all()
        )
        badges = cls._badge_counts(db, [user.id for user, _ in rows])
        return _dense_rank(
            [(user, int(points), badges.get(user.id, 0)) for user, points in rows]
        )

    @classmethod
    def get_leaderboard(
        cls, db: Session, limit: int = 10, period="allTime"
    ) -> list[dict]:
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        period = _parse_period(period)
        if period == LeaderboardPeriod.all_time:
            return cls._live_all_time(db, limit)

        start, end = period_window(period)
        snapshot = (
            db.query(LeaderboardSnapshot)
            .filter(
                LeaderboardSnapshot.period == period,
                LeaderboardSnapshot.period_start == start,
            )
            .order_by(LeaderboardSnapshot.created_at.desc())
            .first()
        )
        if snapshot is not None:
            return list(snapshot.rankings)[:limit]
        return cls._live_window(db, start, end, limit)

    @classmethod
    def get_user_rank(cls, db: Session, user_id) -> dict:
        user = cls._get_user(db, user_id)
        higher = (
            db.query(func.count(User.id))
            .filter(User.is_active.is_(True), User.score > user.score)
            .scalar()
        )
        return {"rank": higher + 1, "score": user.score, "badges": list(user.badges)}

    @classmethod
    def get_score_breakdown(cls, db: Session, user_id) -> dict:
        user = cls._get_user(db, user_id)
        rows = (
            db.query(
                ScoreEvent.action,
                func.count(ScoreEvent.id),
                func.coalesce(func.sum(ScoreEvent.points), 0),
            )
            .filter(ScoreEvent.user_id == user.id)
            .group_by(ScoreEvent.action)
            .all()
        )
        history = (
            db.query(ScoreEvent)
            .filter(ScoreEvent.user_id == user.id)
            .order_by(ScoreEvent.created_at.desc())
            .limit(HISTORY_LIMIT)
            .all()
        )
        level = 1 + user.score // POINTS_PER_LEVEL
        return {
            "total_score": user.score,
            "breakdown": {
                action.value: {"count": count, "points": int(points)}
                for action, count, points in rows
            },
            "history": history,
            "level": level,
            "next_level_points": level * POINTS_PER_LEVEL - user.score,
        }

    @classmethod
    def snapshot(
        cls, db: Session, period, now: datetime | None = None
    ) -> LeaderboardSnapshot:
        period = _parse_period(period)
        if period == LeaderboardPeriod.all_time:
            raise ValidationError("All-time leaderboard is always live")
        start, end = period_window(period, now)
        rankings = cls._live_window(db, start, end, SNAPSHOT_SIZE)
        # One row per window: refresh it in place, earlier windows stay as history
        existing = (
            db.query(LeaderboardSnapshot)
            .filter(
                LeaderboardSnapshot.period == period,
                LeaderboardSnapshot.period_start == start,
            )
            .order_by(LeaderboardSnapshot.created_at.desc())
            .all()
        )
        if existing:
            snapshot, *stale = existing
            for row in stale:
                db.delete(row)
            snapshot.period_end = end
            snapshot.rankings = rankings
            snapshot.created_at = datetime.now(timezone.utc)
        else:
            snapshot = LeaderboardSnapshot(
                period=period, period_start=start, period_end=end, rankings=rankings
            )
            db.add(snapshot)
        db.flush()
        logger.info(
            "Stored %s leaderboard snapshot with %d entries",
            period.value,
            len(rankings),
        )
        return snapshot


gamification = Gamification()
