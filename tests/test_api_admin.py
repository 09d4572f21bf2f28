import json

import pytest

from conftest import auth, make_booking, tw
from identity import pwd_context
from models import BookingStatus


@pytest.fixture
def admin_env(monkeypatch):
    monkeypatch.setenv("ADMIN_USERS_JSON", json.dumps({"boss": pwd_context.hash("Secret123")}))


def test_login_issues_admin_token(client, admin_env):
    response = client.post("/admin/login", data={"username": "boss", "password": "Secret123"})
    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["user"] == "boss"

    me = client.get("/admin/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.json() == {"user": "boss"}


def test_login_wrong_password(client, admin_env):
    response = client.post("/admin/login", data={"username": "boss", "password": "nope"})
    assert response.status_code == 401
    response = client.post("/admin/login", data={"username": "ghost", "password": "Secret123"})
    assert response.status_code == 401


def test_me_without_admin(client):
    assert client.get("/admin/me").json() == {"user": None}
    assert client.get("/admin/me", headers=auth("alice")).json() == {"user": None}


def test_review_requires_admin(client):
    assert client.get("/admin/review").status_code == 401
    assert client.get("/admin/review", headers=auth("alice")).status_code == 403


def test_review_list(client, db, admin_headers):
    make_booking(db, status=BookingStatus.pending)
    make_booking(db, start=tw(2025, 3, 5, 9), status=BookingStatus.rejected)

    items = client.get("/admin/review", headers=admin_headers).json()["items"]
    assert len(items) == 2
    pending = client.get("/admin/review", params={"status": "pending"}, headers=admin_headers).json()["items"]
    assert [i["status"] for i in pending] == ["pending"]


def test_approve_and_conflicting_approve(client, db, admin_headers):
    first = make_booking(db, status=BookingStatus.pending)
    second = make_booking(db, start=tw(2025, 3, 4, 10), status=BookingStatus.pending, owner="bob")

    response = client.post(f"/admin/bookings/{first.id}/approve", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["reviewed_by"] == "boss"

    response = client.post(f"/admin/bookings/{second.id}/approve", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "overlap"

    response = client.post(f"/admin/bookings/{first.id}/approve", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_status"


def test_reject_with_reason(client, db, admin_headers):
    b = make_booking(db, status=BookingStatus.pending)
    response = client.post(
        f"/admin/bookings/{b.id}/reject", json={"reason": "時段保留給校方"}, headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert response.json()["rejection_reason"] == "時段保留給校方"


def test_reject_without_body(client, db, admin_headers):
    b = make_booking(db, status=BookingStatus.pending)
    response = client.post(f"/admin/bookings/{b.id}/reject", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["rejection_reason"] is None


def test_review_actions_require_admin(client, db):
    b = make_booking(db, status=BookingStatus.pending)
    assert client.post(f"/admin/bookings/{b.id}/approve", headers=auth("alice")).status_code == 403
    assert client.post(f"/admin/bookings/{b.id}/reject").status_code == 401


def test_approve_unknown(client, admin_headers):
    response = client.post("/admin/bookings/nope/approve", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.parametrize("raw", ["[]", '["boss"]', "true"])
def test_login_with_misconfigured_admins(client, monkeypatch, raw):
    monkeypatch.setenv("ADMIN_USERS_JSON", raw)
    response = client.post("/admin/login", data={"username": "boss", "password": "Secret123"})
    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"
