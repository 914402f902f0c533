from __future__ import annotations

import pytest

from schoolhub.core.config import settings
from schoolhub.core.security import get_password_hash, verify_password
from tests.conftest import ADMIN, PARENT, TEACHER, profile_row


@pytest.fixture
def mock_auth(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_MODE", "mock")


@pytest.fixture
def accounts(fake_db):
    fake_db.seed(
        "profiles",
        profile_row(TEACHER, password_hash=get_password_hash("correct-horse")),
        profile_row(PARENT, is_active=False),
        profile_row(ADMIN, password_hash=get_password_hash("Temp1234"), requires_password_reset=True),
    )


def test_password_hashing():
    hashed = get_password_hash("s3cret-pass")
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("other", hashed)
    assert not verify_password("s3cret-pass", "not-a-bcrypt-hash")


def test_login_returns_mock_token(client, accounts, mock_auth):
    res = client.post("/api/auth/login", json={"email": " Lan.Tran@school.edu.vn ", "password": "correct-horse"})
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["token"] == "mock-lan.tran@school.edu.vn"
    assert data["user"]["role"] == "teacher"
    assert data["user"]["homeroom_enabled"] is True


def test_login_rejects_wrong_password_and_inactive_accounts(client, accounts, mock_auth):
    res = client.post("/api/auth/login", json={"email": TEACHER["email"], "password": "wrong"})
    assert res.status_code == 401
    assert res.json() == {"success": False, "error": "Invalid email or password."}

    assert client.post("/api/auth/login", json={"email": PARENT["email"], "password": "x"}).status_code == 401
    assert client.post("/api/auth/login", json={"email": "nobody@gmail.com", "password": "x"}).status_code == 401


def test_login_is_disabled_in_firebase_mode(client, accounts, monkeypatch):
    monkeypatch.setattr(settings, "AUTH_MODE", "firebase")
    res = client.post("/api/auth/login", json={"email": TEACHER["email"], "password": "correct-horse"})
    assert res.status_code == 400


def test_bearer_token_resolves_profile(client, accounts, mock_auth):
    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer mock-{TEACHER['email']}"})
    assert res.status_code == 200
    assert res.json()["data"]["user_id"] == TEACHER["user_id"]


@pytest.mark.parametrize("headers, expected", [
    ({}, 401),
    ({"Authorization": "Bearer not-a-mock-token"}, 401),
    ({"Authorization": "Bearer mock-hoa.pham@gmail.com"}, 403),
    ({"Authorization": "Bearer mock-stranger@gmail.com"}, 403),
])
def test_bearer_token_failures(client, accounts, mock_auth, headers, expected):
    res = client.get("/api/auth/me", headers=headers)
    assert res.status_code == expected
    assert res.json()["success"] is False


def test_reset_password(client, fake_db, accounts, mock_auth):
    url = "/api/auth/reset-password"
    payload = {"email": ADMIN["email"], "old_password": "Temp1234", "new_password": "brand-new-pass"}

    assert client.post(url, json={**payload, "old_password": "guess"}).status_code == 401
    res = client.post(url, json=payload)
    assert res.status_code == 200
    assert res.json()["data"]["token"] == f"mock-{ADMIN['email']}"

    admin = fake_db.rows("profiles", id=ADMIN["user_id"])[0]
    assert admin["requires_password_reset"] is False
    assert verify_password("brand-new-pass", admin["password_hash"])

    # Only once
    assert client.post(url, json={**payload, "old_password": "brand-new-pass"}).status_code == 400


def test_reset_password_validation_envelope(client, accounts):
    res = client.post("/api/auth/reset-password",
                      json={"email": ADMIN["email"], "old_password": "Temp1234", "new_password": "short"})
    assert res.status_code == 422
    body = res.json()
    assert body["success"] is False
    assert body["error"].startswith("new_password:")


# ── Shared error handling ────────────────────────────────────

def test_database_errors_are_translated(client, fake_db, login_as):
    login_as(ADMIN)
    payload = {"title": "Exam week", "content": "Exams start Monday.", "target_roles": ["student"]}

    fake_db.fail_next("notifications", "insert", code="23505", message="duplicate key value")
    res = client.post("/api/notifications", json=payload)
    assert res.status_code == 409
    assert res.json()["error"] == "Record already exists"

    fake_db.fail_next("notifications", "insert", code="22P02", message="invalid input syntax for type uuid")
    res = client.post("/api/notifications", json=payload)
    assert res.status_code == 400
    assert res.json()["error"] == "invalid input syntax for type uuid"


def test_root_and_health(client):
    assert client.get("/").json()["name"] == settings.APP_NAME
    assert client.get("/api/health").json()["status"] == "healthy"
