import uuid

import pytest

from app.models.notification import Notification, NotificationType


@pytest.fixture()
def notification(db_session, consultant):
    n = Notification(
        user_id=consultant.id,
        notification_type=NotificationType.badge_earned,
        title="Badge Earned!",
        message="Congratulations! You earned the First Upload badge.",
    )
    db_session.add(n)
    db_session.commit()
    db_session.refresh(n)
    return n


@pytest.fixture()
def notifications_batch(db_session, consultant):
    items = []
    for i in range(3):
        n = Notification(
            user_id=consultant.id,
            notification_type=NotificationType.comment,
            title=f"New Comment {i}",
            message=f"Comment {i}",
        )
        db_session.add(n)
        items.append(n)
    db_session.commit()
    for n in items:
        db_session.refresh(n)
    return items


class TestNotificationEndpoints:
    def test_get(self, client, notification) -> None:
        resp = client.get(f"/notifications/{notification.id}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == str(notification.id)
        assert body["notification_type"] == "BADGE_EARNED"

    def test_get_not_found(self, client) -> None:
        resp = client.get(f"/notifications/{uuid.uuid4()}")
        assert resp.status_code == 404

    def test_list(self, client, consultant, notifications_batch) -> None:
        resp = client.get(f"/notifications?user_id={consultant.id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 3
        assert len(data["items"]) == 3

    def test_list_filter_type(
        self, client, consultant, notification, notifications_batch
    ) -> None:
        resp = client.get(
            f"/api/v1/notifications?user_id={consultant.id}&type=BADGE_EARNED"
        )
        assert resp.status_code == 200
        assert [n["id"] for n in resp.json()["items"]] == [str(notification.id)]

    def test_list_invalid_type(self, client) -> None:
        resp = client.get("/notifications?type=NOPE")
        assert resp.status_code == 400

    def test_mark_read(self, client, notifications_batch) -> None:
        ids = [str(n.id) for n in notifications_batch[:2]]
        resp = client.post("/notifications/mark-read", json={"notificationIds": ids})
        assert resp.status_code == 200
        assert resp.json()["marked"] == 2

    def test_mark_all_read(self, client, consultant, notifications_batch) -> None:
        resp = client.post(
            "/notifications/mark-all-read", json={"userId": str(consultant.id)}
        )
        assert resp.status_code == 200
        assert resp.json()["marked"] == 3

        resp = client.get(f"/notifications/unread-count?user_id={consultant.id}")
        assert resp.json() == {"count": 0}

    def test_unread_count(self, client, consultant, notifications_batch) -> None:
        resp = client.get(f"/notifications/unread-count?user_id={consultant.id}")
        assert resp.status_code == 200
        assert resp.json() == {"count": 3}

    def test_dismiss(self, client, consultant, notification) -> None:
        resp = client.delete(f"/notifications/{notification.id}")
        assert resp.status_code == 204

        resp = client.get(f"/notifications?user_id={consultant.id}")
        assert resp.json()["count"] == 0
