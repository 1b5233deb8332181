import pytest
from fastapi.testclient import TestClient

from inksnap.api.auth import create_access_token
from inksnap.database import get_db
from inksnap.main import app


@pytest.fixture
def client(Session, make_profile, hub, monkeypatch):
    make_profile("alice")
    make_profile("bob", is_artist=True)
    make_profile("carol")

    def override_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    monkeypatch.setattr("inksnap.api.api_rest.hub", hub)
    app.dependency_overrides[get_db] = override_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)


def auth(identity):
    return {"Authorization": f"Bearer {create_access_token(identity)}"}


def _conversation(client):
    res = client.post(
        "/api/v1/rpc/start_or_get_conversation",
        json={"identity_a": "alice", "identity_b": "bob"},
        headers=auth("alice"),
    )
    assert res.status_code == 200, res.text
    return res.json()["id"]


def test_requests_without_a_valid_token_are_rejected(client):
    assert client.get("/api/v1/rest/profiles").status_code == 401
    res = client.get("/api/v1/rest/profiles", headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401
    res = client.get("/api/v1/rest/profiles", params={"access_token": create_access_token("alice")})
    assert res.status_code == 200


def test_insert_select_update_delete_round(client, hub):
    conv_id = _conversation(client)
    pushed = []
    hub.subscribe("messages", "conversation_id", conv_id, "bob", callback=pushed.append)

    res = client.post(
        "/api/v1/rest/messages",
        json={"conversation_id": conv_id, "content": "Hello Bob"},
        headers=auth("alice"),
    )
    assert res.status_code == 201, res.text
    message = res.json()
    assert message["receiver_id"] == "bob"
    assert [p["record"]["id"] for p in pushed] == [message["id"]]

    client.post("/api/v1/rest/messages", json={"conversation_id": conv_id, "content": "Second"}, headers=auth("alice"))

    res = client.get(
        "/api/v1/rest/messages",
        params={"conversation_id": f"eq.{conv_id}", "order": "created_at.desc", "limit": "1", "embed": "sender"},
        headers=auth("bob"),
    )
    assert res.status_code == 200
    rows = res.json()
    assert len(rows) == 1
    assert rows[0]["sender"]["username"] == "alice"

    res = client.get(
        "/api/v1/rest/messages/count",
        params={"receiver_id": "eq.bob", "is_read": "eq.false"},
        headers=auth("bob"),
    )
    assert res.json() == {"count": 2}

    res = client.patch(
        "/api/v1/rest/messages",
        params={"conversation_id": f"eq.{conv_id}", "receiver_id": "eq.bob"},
        json={"is_read": True},
        headers=auth("bob"),
    )
    assert res.status_code == 200
    assert all(row["is_read"] for row in res.json())
    assert len(res.json()) == 2

    res = client.post("/api/v1/rest/follows", json={"following_id": "bob"}, headers=auth("alice"))
    assert res.status_code == 201
    res = client.delete("/api/v1/rest/follows", params={"following_id": "eq.bob"}, headers=auth("alice"))
    assert res.json() == {"deleted": 1}


def test_policy_failures_use_the_error_shape(client):
    conv_id = _conversation(client)
    res = client.post(
        "/api/v1/rest/messages",
        json={"conversation_id": conv_id, "content": "Sneaky"},
        headers=auth("carol"),
    )
    assert res.status_code == 403
    detail = res.json()["detail"]
    assert detail["message"] == "Not a participant in this conversation."
    assert detail["field_errors"] == {"conversation_id": "forbidden"}


def test_duplicate_review_returns_conflict(client):
    body = {"artist_id": "bob", "stars": 4, "comment": "Clean lines"}
    assert client.post("/api/v1/rest/reviews", json=body, headers=auth("alice")).status_code == 201
    res = client.post("/api/v1/rest/reviews", json=body, headers=auth("alice"))
    assert res.status_code == 409
    assert res.json()["detail"]["field_errors"] == {"artist_id": "review_exists"}


def test_unsupported_filters_and_tables(client):
    res = client.get("/api/v1/rest/profiles", params={"username": "like.al%"}, headers=auth("alice"))
    assert res.status_code == 400
    assert res.json()["detail"]["field_errors"] == {"username": "unsupported_operator"}

    assert client.get("/api/v1/rest/secrets", headers=auth("alice")).status_code == 400
    res = client.get("/api/v1/rest/profiles", params={"order": "name.sideways"}, headers=auth("alice"))
    assert res.status_code == 400
    res = client.get("/api/v1/rest/profiles", params={"location": "is.null"}, headers=auth("alice"))
    assert len(res.json()) == 3


def test_booking_status_update_by_wrong_role_is_empty(client):
    res = client.post(
        "/api/v1/rest/bookings",
        json={"artist_id": "bob", "requested_datetime": "2030-03-01T14:00:00"},
        headers=auth("alice"),
    )
    assert res.status_code == 201
    booking_id = res.json()["id"]

    res = client.patch(
        "/api/v1/rest/bookings",
        params={"id": f"eq.{booking_id}"},
        json={"status": "confirmed"},
        headers=auth("alice"),
    )
    assert res.status_code == 200
    assert res.json() == []

    res = client.patch(
        "/api/v1/rest/bookings",
        params={"id": f"eq.{booking_id}", "status": "eq.pending"},
        json={"status": "confirmed"},
        headers=auth("bob"),
    )
    assert [row["status"] for row in res.json()] == ["confirmed"]


def test_rpc_errors(client):
    res = client.post("/api/v1/rpc/unknown", json={}, headers=auth("alice"))
    assert res.status_code == 404
    res = client.post("/api/v1/rpc/unread_total", headers=auth("alice"))
    assert res.json() == {"total": 0}


def test_realtime_stream_validates_before_streaming(client):
    assert client.get("/api/v1/realtime/messages", params={"column": "conversation_id", "value": "1"}).status_code == 401
    res = client.get(
        "/api/v1/realtime/messages",
        params={"column": "password", "value": "1"},
        headers=auth("alice"),
    )
    assert res.status_code == 400
    assert res.json()["detail"]["field_errors"] == {"password": "unknown_column"}


def test_request_validation_errors_are_logged_and_shaped(client):
    res = client.post("/api/v1/rest/messages", content=b"not json", headers=dict(auth("alice"), **{"Content-Type": "application/json"}))
    assert res.status_code == 422
    assert res.json()["detail"]["message"] == "Invalid request"


def test_healthz_reports_subscribers(client):
    res = client.get("/healthz")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert res.json()["realtime_subscribers"] == 0


def test_openapi_schema_describes_the_gateway(client):
    info = client.get("/openapi.json").json()["info"]
    assert info["title"] == "InkSnap Gateway"
    assert info["version"] == "1.0.0"
    assert "realtime" in info["description"]
