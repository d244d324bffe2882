import uuid


class TestUserEndpoints:
    def test_create(self, client) -> None:
        resp = client.post(
            "/users",
            json={
                "name": "Rita Reviewer",
                "email": "Rita@Example.com",
                "role": "SeniorConsultant",
            },
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["email"] == "rita@example.com"
        assert body["role"] == "SeniorConsultant"
        assert body["score"] == 0
        assert body["badges"] == []

    def test_duplicate_email(self, client, consultant) -> None:
        resp = client.post(
            "/api/v1/users",
            json={"name": "Copy", "email": consultant.email.upper()},
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "conflict"

    def test_invalid_role(self, client) -> None:
        resp = client.post(
            "/users", json={"name": "X", "email": "x@example.com", "role": "Boss"}
        )
        assert resp.status_code == 422

    def test_get(self, client, consultant) -> None:
        resp = client.get(f"/users/{consultant.id}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Casey Consultant"

    def test_get_not_found(self, client) -> None:
        resp = client.get(f"/users/{uuid.uuid4()}")
        assert resp.status_code == 404

    def test_list_by_role(self, client, consultant, admin) -> None:
        resp = client.get("/users?role=Admin")
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        assert body["items"][0]["id"] == str(admin.id)

    def test_list_invalid_role(self, client) -> None:
        resp = client.get("/users?role=Boss")
        assert resp.status_code == 400
