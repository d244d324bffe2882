import dataclasses
import json
import uuid
from unittest.mock import patch

import pytest

from app.config import settings
from app.models.knowledge import Document, DocumentStatus


@pytest.fixture()
def local_attachments(tmp_path):
    with patch(
        "app.services.kb_storage.settings",
        dataclasses.replace(
            settings,
            attachment_upload_dir=str(tmp_path),
            s3_endpoint_url="",
            s3_access_key="",
            s3_secret_key="",
        ),
    ):
        yield tmp_path


@pytest.fixture()
def approved_document(db_session, consultant):
    doc = Document(
        document_id="KH-APPROVED",
        title="Approved Pricing Guide",
        uploader_id=consultant.id,
        status=DocumentStatus.approved,
        file_urls=[],
    )
    db_session.add(doc)
    db_session.commit()
    db_session.refresh(doc)
    return doc


class TestUploadEndpoint:
    def test_json_upload(self, client, consultant) -> None:
        resp = client.post(
            "/documents/upload",
            json={
                "title": "Intro to X",
                "uploaderId": str(consultant.id),
                "fileUrl": "/uploads/x/intro.pdf",
                "tags": ["intro"],
            },
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["code"] == "UPLOADED"
        assert body["data"]["document"]["status"] == "Pending"
        assert body["data"]["points_earned"] == 10

    def test_duplicate_returns_409(self, client, consultant, pending_document) -> None:
        resp = client.post(
            "/documents/upload",
            json={"title": pending_document.title, "uploaderId": str(consultant.id)},
        )
        assert resp.status_code == 409
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "DUPLICATE_WARNING"
        assert body["similar_documents"][0]["id"] == str(pending_document.id)
        assert body["similar_documents"][0]["similarity"] == 100

    def test_confirmed_duplicate_adds_version(
        self, client, consultant, pending_document
    ) -> None:
        resp = client.post(
            "/api/v1/upload",
            json={
                "title": pending_document.title,
                "uploaderId": str(consultant.id),
                "confirmDuplicate": True,
                "fileUrl": "/uploads/def/playbook-v2.pdf",
            },
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == "NEW_VERSION"
        assert body["data"]["is_new_version"] is True
        assert [v["version_number"] for v in body["data"]["document"]["versions"]] == [
            1,
            2,
        ]

    def test_multipart_upload(self, client, consultant, local_attachments) -> None:
        resp = client.post(
            "/upload",
            data={
                "title": "Field Guide",
                "uploaderId": str(consultant.id),
                "tags": json.dumps(["field", "ops"]),
                "metadata": json.dumps([{"key": "domain", "value": "Operations"}]),
                "confirmDuplicate": "true",
            },
            files=[
                ("files", ("guide.pdf", b"%PDF-1.4 guide", "application/pdf")),
                ("files", ("appendix.txt", b"appendix", "text/plain")),
            ],
        )
        assert resp.status_code == 201
        document = resp.json()["data"]["document"]
        assert document["tags"] == ["field", "ops"]
        assert document["metadata"] == [{"key": "domain", "value": "Operations"}]
        assert len(document["file_urls"]) == 2
        assert document["file_urls"][0].endswith("/guide.pdf")
        assert document["file_urls"][1].endswith("/appendix.txt")

    def test_compliance_rejected(self, client, consultant) -> None:
        resp = client.post(
            "/documents/upload",
            json={
                "title": "Customer list",
                "uploaderId": str(consultant.id),
                "metadata": [
                    {"key": "region", "value": "EU"},
                    {"key": "dataType", "value": "personal"},
                ],
            },
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == "COMPLIANCE_REJECTED"
        assert body["data"]["document"]["status"] == "Rejected"
        assert body["data"]["compliance_check"]["is_sensitive"] is True

    def test_missing_title(self, client, consultant) -> None:
        resp = client.post(
            "/documents/upload", json={"uploaderId": str(consultant.id)}
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    @pytest.mark.parametrize(
        "fields,location",
        [
            ({"metadata": [{"key": "domain", "value": 5}]}, "metadata"),
            ({"tags": [1]}, "tags"),
            ({"confirmDuplicate": "maybe"}, "confirmDuplicate"),
        ],
    )
    def test_malformed_fields_return_400(
        self, client, db_session, consultant, fields, location
    ) -> None:
        resp = client.post(
            "/documents/upload",
            json={"title": "Intro to X", "uploaderId": str(consultant.id), **fields},
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "validation_error"
        assert body["message"] == "Invalid upload fields"
        assert body["details"][0]["loc"][0] == location
        assert db_session.query(Document).count() == 0

    def test_malformed_multipart_field_returns_400(self, client, consultant) -> None:
        resp = client.post(
            "/upload",
            data={
                "title": "Field Guide",
                "uploaderId": str(consultant.id),
                "metadata": json.dumps([{"key": "owner"}]),
            },
        )
        assert resp.status_code == 400
        assert resp.json()["details"][0]["type"] == "missing"

    def test_unknown_uploader(self, client) -> None:
        resp = client.post(
            "/documents/upload",
            json={"title": "Orphan", "uploaderId": str(uuid.uuid4())},
        )
        assert resp.status_code == 404

    def test_non_object_body(self, client) -> None:
        resp = client.post("/documents/upload", json=["not", "an", "object"])
        assert resp.status_code == 400


class TestReviewEndpoint:
    def test_approve(self, client, pending_document, admin) -> None:
        resp = client.put(
            f"/documents/{pending_document.id}/status",
            json={"userId": str(admin.id), "status": "Approved"},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["status"] == "Approved"
        assert body["data"]["reviewed_by"] == admin.name

    def test_reject_with_reason(self, client, pending_document, admin) -> None:
        resp = client.put(
            f"/api/v1/documents/{pending_document.id}/status",
            json={
                "userId": str(admin.id),
                "status": "Rejected",
                "rejectionReason": "Outdated figures",
            },
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "Rejected"

    def test_consultant_forbidden(self, client, pending_document, consultant) -> None:
        resp = client.put(
            f"/documents/{pending_document.id}/status",
            json={"userId": str(consultant.id), "status": "Approved"},
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "permission_denied"

    def test_invalid_status(self, client, pending_document, admin) -> None:
        resp = client.put(
            f"/documents/{pending_document.id}/status",
            json={"userId": str(admin.id), "status": "Published"},
        )
        assert resp.status_code == 400

    def test_missing_fields(self, client, pending_document) -> None:
        resp = client.put(f"/documents/{pending_document.id}/status", json={})
        assert resp.status_code == 400

    def test_unknown_document(self, client, admin) -> None:
        resp = client.put(
            f"/documents/{uuid.uuid4()}/status",
            json={"userId": str(admin.id), "status": "Approved"},
        )
        assert resp.status_code == 404

    def test_already_reviewed(self, client, approved_document, admin) -> None:
        resp = client.put(
            f"/documents/{approved_document.id}/status",
            json={"userId": str(admin.id), "status": "Archived"},
        )
        assert resp.status_code == 409


class TestGovernanceEndpoints:
    def test_pending_queue(
        self, client, pending_document, senior_consultant, consultant
    ) -> None:
        resp = client.get(f"/documents/pending?user_id={senior_consultant.id}")
        assert resp.status_code == 200
        assert [d["id"] for d in resp.json()] == [str(pending_document.id)]

        resp = client.get(f"/documents/pending?user_id={consultant.id}")
        assert resp.status_code == 403

    def test_request_revision(self, client, pending_document, admin) -> None:
        resp = client.post(
            f"/documents/{pending_document.id}/request-revision",
            json={"userId": str(admin.id), "notes": "Add sources"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "Draft"
        assert resp.json()["revision_notes"] == "Add sources"

    def test_flag_and_list_flagged(self, client, pending_document, kgc_member) -> None:
        resp = client.put(
            f"/documents/{pending_document.id}/flag",
            json={"userId": str(kgc_member.id), "flag": True, "flagReason": "PII"},
        )
        assert resp.status_code == 200
        assert resp.json()["compliance_flag"] is True

        resp = client.get(f"/documents/flagged?user_id={kgc_member.id}")
        assert resp.status_code == 200
        assert [d["flag_reason"] for d in resp.json()] == ["PII"]

    def test_history(self, client, pending_document, admin, consultant) -> None:
        client.put(
            f"/documents/{pending_document.id}/status",
            json={"userId": str(admin.id), "status": "Approved"},
        )
        resp = client.get(
            f"/documents/{pending_document.id}/history?user_id={consultant.id}"
        )
        assert resp.status_code == 200
        assert [e["action"] for e in resp.json()] == ["APPROVE"]

    def test_delete_requires_admin(
        self, client, db_session, pending_document, consultant, admin
    ) -> None:
        resp = client.delete(
            f"/documents/{pending_document.id}?user_id={consultant.id}"
        )
        assert resp.status_code == 403

        resp = client.delete(f"/documents/{pending_document.id}?user_id={admin.id}")
        assert resp.status_code == 204
        assert db_session.query(Document).count() == 0


class TestReadEndpoints:
    def test_list_respects_visibility(
        self, client, pending_document, approved_document, make_user, admin
    ) -> None:
        stranger = make_user()
        resp = client.get(f"/documents?user_id={stranger.id}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        assert body["items"][0]["id"] == str(approved_document.id)

        resp = client.get(f"/documents?user_id={admin.id}&order_dir=asc")
        assert resp.json()["count"] == 2

    def test_list_requires_user(self, client) -> None:
        resp = client.get("/documents")
        assert resp.status_code == 422

    def test_search(self, client, approved_document, admin) -> None:
        resp = client.get(f"/documents/search?q=pricing&user_id={admin.id}")
        assert resp.status_code == 200
        assert resp.json()["items"][0]["title"] == "Approved Pricing Guide"

    def test_get_hidden_document(self, client, pending_document, make_user) -> None:
        stranger = make_user()
        resp = client.get(f"/documents/{pending_document.id}?user_id={stranger.id}")
        assert resp.status_code == 404

    def test_get_with_comments(self, client, pending_document, consultant) -> None:
        client.post(
            f"/documents/{pending_document.id}/comments",
            json={"userId": str(consultant.id), "text": "Looks good"},
        )
        resp = client.get(f"/documents/{pending_document.id}?user_id={consultant.id}")
        assert resp.status_code == 200
        assert [c["text"] for c in resp.json()["comments"]] == ["Looks good"]

    def test_versions(self, client, pending_document, consultant) -> None:
        resp = client.post(
            f"/documents/{pending_document.id}/versions",
            json={"userId": str(consultant.id), "changelog": "Updated tables"},
        )
        assert resp.status_code == 201
        assert resp.json()["version_number"] == 2

        resp = client.get(f"/documents/{pending_document.id}/versions")
        assert [v["version_number"] for v in resp.json()] == [1, 2]

    def test_versions_unknown_document(self, client) -> None:
        resp = client.get(f"/documents/{uuid.uuid4()}/versions")
        assert resp.status_code == 404


class TestInteractionEndpoints:
    def test_rate(self, client, approved_document, make_user) -> None:
        rater = make_user()
        resp = client.post(
            f"/documents/{approved_document.id}/rate",
            json={"userId": str(rater.id), "rating": 4},
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "average_rating": 4.0,
            "rating_count": 1,
            "user_rating": 4,
        }

    def test_rate_out_of_range(self, client, approved_document, consultant) -> None:
        resp = client.post(
            f"/documents/{approved_document.id}/rate",
            json={"userId": str(consultant.id), "rating": 7},
        )
        assert resp.status_code == 400

    def test_like_toggle(self, client, approved_document, make_user) -> None:
        fan = make_user()
        url = f"/documents/{approved_document.id}/like"
        first = client.post(url, json={"userId": str(fan.id)})
        second = client.post(url, json={"userId": str(fan.id)})
        assert first.json() == {"is_liked": True, "likes_count": 1}
        assert second.json() == {"is_liked": False, "likes_count": 0}

    def test_comment_and_delete(self, client, approved_document, consultant) -> None:
        resp = client.post(
            f"/documents/{approved_document.id}/comments",
            json={"userId": str(consultant.id), "text": "Great"},
        )
        assert resp.status_code == 201
        comment_id = resp.json()["id"]

        resp = client.delete(
            f"/documents/{approved_document.id}/comments/{comment_id}"
            f"?user_id={consultant.id}"
        )
        assert resp.status_code == 204

    def test_blank_comment(self, client, approved_document, consultant) -> None:
        resp = client.post(
            f"/documents/{approved_document.id}/comments",
            json={"userId": str(consultant.id), "text": ""},
        )
        assert resp.status_code == 422
