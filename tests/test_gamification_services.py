import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.errors import NotFoundError, ValidationError
from app.models.gamification import (
    LeaderboardPeriod,
    LeaderboardSnapshot,
    ScoreAction,
    ScoreEvent,
)
from app.models.user import UserBadge, UserRole
from app.services.gamification import gamification, period_window


class TestAwardPoints:
    def test_upload_awards_ten_and_first_badge(self, db_session, consultant) -> None:
        result = gamification.award_points(
            db_session, consultant.id, ScoreAction.upload, "Uploaded a doc"
        )
        db_session.commit()

        assert result.points_awarded == 10
        assert result.new_total == 10
        assert result.new_badges == ["First Upload"]
        db_session.refresh(consultant)
        assert consultant.score == 10
        events = db_session.query(ScoreEvent).filter_by(user_id=consultant.id).all()
        assert len(events) == 1
        assert events[0].action == ScoreAction.upload

    @pytest.mark.parametrize(
        "action,points",
        [
            (ScoreAction.review, 5),
            (ScoreAction.like_received, 2),
            (ScoreAction.comment, 1),
            (ScoreAction.training_complete, 15),
            (ScoreAction.approval, 10),
        ],
    )
    def test_fixed_amounts(self, db_session, consultant, action, points) -> None:
        result = gamification.award_points(db_session, consultant.id, action)
        assert result.points_awarded == points

    def test_unknown_user(self, db_session) -> None:
        with pytest.raises(NotFoundError):
            gamification.award_points(db_session, uuid.uuid4(), ScoreAction.upload)
        assert db_session.query(ScoreEvent).count() == 0

    def test_crossing_thresholds(self, db_session, make_user) -> None:
        user = make_user(UserRole.consultant, score=95)
        result = gamification.award_points(db_session, user.id, ScoreAction.approval)
        db_session.commit()
        assert result.new_total == 105
        assert "Top Contributor" in result.new_badges
        assert "Rising Star" in result.new_badges


class TestEvaluateBadges:
    def test_idempotent(self, db_session, make_user) -> None:
        user = make_user(UserRole.consultant, score=60)
        first = gamification.evaluate_badges(db_session, user.id)
        db_session.commit()
        second = gamification.evaluate_badges(db_session, user.id)

        assert set(first) == {"First Upload", "Rising Star"}
        assert second == []
        names = [b.name for b in db_session.query(UserBadge).filter_by(user_id=user.id)]
        assert sorted(names) == sorted(set(names))

    def test_mentor_from_review_count(self, db_session, senior_consultant) -> None:
        for _ in range(19):
            gamification.award_points(
                db_session, senior_consultant.id, ScoreAction.review
            )
        db_session.commit()
        held = {b.name for b in senior_consultant.badges}
        assert "Mentor" not in held

        result = gamification.award_points(
            db_session, senior_consultant.id, ScoreAction.review
        )
        assert "Mentor" in result.new_badges

    def test_knowledge_guru_from_approvals(self, db_session, consultant) -> None:
        new = []
        for _ in range(10):
            new += gamification.award_points(
                db_session, consultant.id, ScoreAction.approval
            ).new_badges
        assert "Knowledge Guru" in new

    def test_first_upload_from_upload_count(self, db_session, consultant) -> None:
        db_session.add(
            ScoreEvent(user_id=consultant.id, action=ScoreAction.upload, points=0)
        )
        db_session.commit()
        assert gamification.evaluate_badges(db_session, consultant.id) == [
            "First Upload"
        ]


class TestLeaderboard:
    def test_dense_rank_active_only(self, db_session, make_user) -> None:
        a = make_user(UserRole.consultant, score=50)
        b = make_user(UserRole.consultant, score=50)
        c = make_user(UserRole.consultant, score=20)
        make_user(UserRole.consultant, score=999, is_active=False)

        board = gamification.get_leaderboard(db_session, limit=10)

        assert {e["user"]["id"] for e in board[:2]} == {str(a.id), str(b.id)}
        assert board[2]["user"]["id"] == str(c.id)
        assert [e["rank"] for e in board] == [1, 1, 2]
        assert board[0]["badge_count"] == 0

    def test_limit(self, db_session, make_user) -> None:
        for score in (30, 20, 10):
            make_user(UserRole.consultant, score=score)
        board = gamification.get_leaderboard(db_session, limit=2)
        assert len(board) == 2

    def test_invalid_limit_and_period(self, db_session) -> None:
        with pytest.raises(ValidationError):
            gamification.get_leaderboard(db_session, limit=0)
        with pytest.raises(ValidationError):
            gamification.get_leaderboard(db_session, period="yearly")

    def test_weekly_live_from_history(self, db_session, make_user) -> None:
        veteran = make_user(UserRole.consultant, score=500)
        newcomer = make_user(UserRole.consultant)
        gamification.award_points(db_session, newcomer.id, ScoreAction.upload)
        db_session.commit()

        board = gamification.get_leaderboard(db_session, period="weekly")

        assert [e["user"]["id"] for e in board] == [str(newcomer.id)]
        assert board[0]["score"] == 10
        assert str(veteran.id) not in {e["user"]["id"] for e in board}

    def test_weekly_reads_snapshot(self, db_session, consultant) -> None:
        gamification.award_points(db_session, consultant.id, ScoreAction.upload)
        snapshot = gamification.snapshot(db_session, LeaderboardPeriod.weekly)
        db_session.commit()
        assert snapshot.rankings[0]["user"]["id"] == str(consultant.id)

        # Later awards stay out of the stored snapshot
        gamification.award_points(db_session, consultant.id, ScoreAction.upload)
        db_session.commit()
        board = gamification.get_leaderboard(db_session, period="weekly")
        assert board[0]["score"] == 10

    def test_snapshot_refreshes_current_window(self, db_session, consultant) -> None:
        gamification.snapshot(db_session, LeaderboardPeriod.weekly)
        db_session.commit()
        gamification.award_points(db_session, consultant.id, ScoreAction.upload)
        gamification.snapshot(db_session, LeaderboardPeriod.weekly)
        gamification.snapshot(db_session, LeaderboardPeriod.weekly)
        db_session.commit()

        rows = db_session.query(LeaderboardSnapshot).all()
        assert len(rows) == 1
        assert rows[0].rankings[0]["score"] == 10
        board = gamification.get_leaderboard(db_session, period="weekly")
        assert board[0]["user"]["id"] == str(consultant.id)

    def test_snapshot_keeps_earlier_windows(self, db_session) -> None:
        now = datetime.now(timezone.utc)
        last_week = now - timedelta(days=7)
        gamification.snapshot(db_session, LeaderboardPeriod.weekly, last_week)
        gamification.snapshot(db_session, LeaderboardPeriod.weekly, now)
        gamification.snapshot(db_session, LeaderboardPeriod.weekly, now)
        db_session.commit()

        starts = {
            row.period_start
            for row in db_session.query(LeaderboardSnapshot).filter_by(
                period=LeaderboardPeriod.weekly
            )
        }
        assert len(starts) == 2
        assert db_session.query(LeaderboardSnapshot).count() == 2

    def test_snapshot_rejects_all_time(self, db_session) -> None:
        with pytest.raises(ValidationError):
            gamification.snapshot(db_session, LeaderboardPeriod.all_time)
        assert db_session.query(LeaderboardSnapshot).count() == 0


class TestPeriodWindow:
    def test_weekly_starts_monday(self) -> None:
        now = datetime(2026, 10, 22, 15, 30, tzinfo=timezone.utc)  # Thursday
        start, end = period_window(LeaderboardPeriod.weekly, now)
        assert start == datetime(2026, 10, 19, tzinfo=timezone.utc)
        assert end - start == timedelta(days=7)

    def test_monthly_wraps_year(self) -> None:
        now = datetime(2026, 12, 5, tzinfo=timezone.utc)
        start, end = period_window(LeaderboardPeriod.monthly, now)
        assert start == datetime(2026, 12, 1, tzinfo=timezone.utc)
        assert end == datetime(2027, 1, 1, tzinfo=timezone.utc)


class TestUserRankAndBreakdown:
    def test_rank_counts_strictly_higher(self, db_session, make_user) -> None:
        make_user(UserRole.consultant, score=80)
        make_user(UserRole.consultant, score=80)
        me = make_user(UserRole.consultant, score=40)
        make_user(UserRole.consultant, score=90, is_active=False)

        rank = gamification.get_user_rank(db_session, me.id)
        assert rank["rank"] == 3
        assert rank["score"] == 40

    def test_breakdown(self, db_session, consultant) -> None:
        gamification.award_points(db_session, consultant.id, ScoreAction.upload)
        gamification.award_points(db_session, consultant.id, ScoreAction.upload)
        gamification.award_points(db_session, consultant.id, ScoreAction.comment)
        db_session.commit()

        data = gamification.get_score_breakdown(db_session, consultant.id)

        assert data["total_score"] == 21
        assert data["breakdown"]["UPLOAD"] == {"count": 2, "points": 20}
        assert data["breakdown"]["COMMENT"] == {"count": 1, "points": 1}
        assert len(data["history"]) == 3
        assert data["level"] == 1
        assert data["next_level_points"] == 79

    def test_breakdown_unknown_user(self, db_session) -> None:
        with pytest.raises(NotFoundError):
            gamification.get_score_breakdown(db_session, uuid.uuid4())
