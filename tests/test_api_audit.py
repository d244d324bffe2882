from app.models.audit import AuditAction
from app.services.audit import audit_trail


class TestAuditEndpoints:
    def test_list_filtered_by_action(self, client, db_session, admin) -> None:
        audit_trail.record(db_session, admin, AuditAction.approve, "doc-1")
        audit_trail.record(db_session, admin, AuditAction.delete, "doc-2")
        db_session.commit()

        resp = client.get("/audit-logs?action=DELETE")
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        assert body["items"][0]["target_id"] == "doc-2"
        assert body["items"][0]["actor_name"] == "Ada Admin"

    def test_list_invalid_action(self, client) -> None:
        resp = client.get("/api/v1/audit-logs?action=HACK")
        assert resp.status_code == 400
        assert resp.json()["success"] is False


class TestServiceEndpoints:
    def test_health(self, client) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_metrics(self, client) -> None:
        client.get("/health")
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
