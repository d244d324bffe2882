import uuid

from app.models.gamification import ScoreAction
from app.services.gamification import gamification


class TestLeaderboardEndpoints:
    def test_all_time(self, client, db_session, make_user) -> None:
        leader = make_user(score=120)
        runner_up = make_user(score=40)
        make_user(score=0, is_active=False)

        resp = client.get("/leaderboard")
        assert resp.status_code == 200
        entries = resp.json()
        assert [e["user"]["id"] for e in entries[:2]] == [
            str(leader.id),
            str(runner_up.id),
        ]
        assert [e["rank"] for e in entries[:2]] == [1, 2]

    def test_limit(self, client, make_user) -> None:
        for score in (30, 20, 10):
            make_user(score=score)
        resp = client.get("/api/v1/leaderboard?limit=2")
        assert len(resp.json()) == 2

    def test_limit_out_of_range(self, client) -> None:
        resp = client.get("/leaderboard?limit=0")
        assert resp.status_code == 422

    def test_weekly(self, client, db_session, consultant) -> None:
        gamification.award_points(db_session, consultant.id, ScoreAction.upload)
        db_session.commit()

        resp = client.get("/leaderboard?period=weekly")
        assert resp.status_code == 200
        entries = resp.json()
        assert entries[0]["user"]["id"] == str(consultant.id)
        assert entries[0]["score"] == 10

    def test_invalid_period(self, client) -> None:
        resp = client.get("/leaderboard?period=daily")
        assert resp.status_code == 400


class TestUserScoreEndpoints:
    def test_rank(self, client, make_user) -> None:
        make_user(score=50)
        me = make_user(score=20)
        resp = client.get(f"/users/{me.id}/rank")
        assert resp.status_code == 200
        assert resp.json() == {"rank": 2, "score": 20, "badges": []}

    def test_rank_unknown_user(self, client) -> None:
        resp = client.get(f"/users/{uuid.uuid4()}/rank")
        assert resp.status_code == 404

    def test_score_breakdown(self, client, db_session, consultant) -> None:
        gamification.award_points(db_session, consultant.id, ScoreAction.upload)
        gamification.award_points(db_session, consultant.id, ScoreAction.comment)
        db_session.commit()

        resp = client.get(f"/users/{consultant.id}/score")
        assert resp.status_code == 200
        body = resp.json()
        assert body["breakdown"]["UPLOAD"]["count"] == 1
        assert len(body["history"]) == 2
        assert body["level"] >= 1
