import asyncio
from datetime import timedelta

from jose import jwt

from auth import create_token
from conftest import bearer, login


def test_register_returns_citizen_token(client, settings):
    resp = client.post("/api/auth/register", json={
        "username": "asha",
        "email": "Asha@Example.com",
        "password": "monsoon1",
        "profile": {"firstName": "Asha"},
    })
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["user"]["role"] == "citizen"
    assert data["user"]["email"] == "asha@example.com"

    claims = jwt.decode(data["token"], settings.jwt_secret, algorithms=["HS256"])
    assert claims["id"] == data["user"]["id"]
    assert claims["username"] == "asha"
    assert claims["role"] == "citizen"
    assert claims["exp"] - claims["iat"] == int(timedelta(days=7).total_seconds())


def test_register_rejects_duplicates(client, register):
    register("asha")
    dup_email = client.post("/api/auth/register", json={
        "username": "asha2", "email": "asha@example.com", "password": "monsoon1",
    })
    dup_name = client.post("/api/auth/register", json={
        "username": "asha", "email": "other@example.com", "password": "monsoon1",
    })
    assert dup_email.status_code == 400
    assert dup_name.status_code == 400
    assert dup_email.json() == {"success": False, "message": "User already exists"}


def test_register_validation(client):
    resp = client.post("/api/auth/register", json={"username": "x", "email": "nope", "password": "1"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert {e["field"] for e in resp.json()["errors"]} == {"body.username", "body.email", "body.password"}


def test_login_never_returns_password(client):
    resp = client.post("/api/auth/login", json={"email": "admin@hydronexus.com", "password": "admin123"})
    assert resp.status_code == 200
    user = resp.json()["data"]["user"]
    assert user["role"] == "admin"
    assert "password" not in user


def test_login_failures(client, store):
    wrong = client.post("/api/auth/login", json={"email": "admin@hydronexus.com", "password": "nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "admin123"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json()["message"] == "Invalid credentials"

    store.users.get_by_id("user001")["isActive"] = False
    inactive = client.post("/api/auth/login", json={"email": "citizen@example.com", "password": "admin123"})
    assert inactive.status_code == 401


def test_profile_round(client, citizen_headers):
    resp = client.put(
        "/api/auth/profile",
        json={"profile": {"phone": "555-0100"}, "preferences": {"language": "hi"}},
        headers=citizen_headers,
    )
    assert resp.status_code == 200
    assert "password" not in resp.json()["data"]["user"]

    user = client.get("/api/auth/profile", headers=citizen_headers).json()["data"]["user"]
    assert user["profile"] == {"firstName": "Test", "lastName": "User", "phone": "555-0100"}
    assert user["preferences"]["language"] == "hi"
    assert user["preferences"]["notifications"] == {"email": True, "push": True}


def test_change_password(client, citizen_headers):
    bad = client.put(
        "/api/auth/change-password",
        json={"currentPassword": "wrong", "newPassword": "newpass1"},
        headers=citizen_headers,
    )
    assert bad.status_code == 401

    good = client.put(
        "/api/auth/change-password",
        json={"currentPassword": "admin123", "newPassword": "newpass1"},
        headers=citizen_headers,
    )
    assert good.status_code == 200
    assert login(client, "citizen@example.com", "newpass1")


def test_missing_bad_and_expired_tokens(client, store, settings):
    assert client.get("/api/auth/profile").status_code == 401
    assert client.get("/api/auth/profile", headers=bearer("garbage")).status_code == 401
    assert client.get("/api/auth/profile", headers={"Authorization": "Basic abc"}).status_code == 401

    expired = settings.__class__(jwt_secret=settings.jwt_secret, jwt_expire_days=-1)
    token = create_token(store.users.get_by_id("user001"), expired)
    resp = client.get("/api/auth/profile", headers=bearer(token))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Token expired"


def test_token_in_query_string(client):
    token = login(client, "citizen@example.com")
    assert client.get("/api/auth/verify", params={"token": token}).status_code == 200


def test_verify_rejects_deactivated_user(client, citizen_headers, store):
    assert client.get("/api/auth/verify", headers=citizen_headers).status_code == 200
    store.users.get_by_id("user001")["isActive"] = False
    assert client.get("/api/auth/verify", headers=citizen_headers).status_code == 401


def test_logout(client, citizen_headers):
    resp = client.post("/api/auth/logout", headers=citizen_headers)
    assert resp.json() == {"success": True, "message": "Logged out successfully"}


class RecordingContext:
    """Wraps a CryptContext and notes whether each call ran on the event loop."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def _record(self, name):
        try:
            asyncio.get_running_loop()
            on_loop = True
        except RuntimeError:
            on_loop = False
        self.calls.append((name, on_loop))

    def hash(self, secret):
        self._record("hash")
        return self.inner.hash(secret)

    def verify(self, secret, hashed):
        self._record("verify")
        return self.inner.verify(secret, hashed)


def test_password_hashing_runs_off_the_event_loop(client, app):
    recorder = RecordingContext(app.state.pwd_context)
    app.state.pwd_context = recorder

    token = client.post("/api/auth/register", json={
        "username": "meera", "email": "meera@example.com", "password": "monsoon1",
    }).json()["data"]["token"]
    assert login(client, "meera@example.com", "monsoon1")
    client.put(
        "/api/auth/change-password",
        json={"currentPassword": "monsoon1", "newPassword": "monsoon2"},
        headers=bearer(token),
    )

    assert [name for name, _ in recorder.calls] == ["hash", "verify", "verify", "hash"]
    assert not any(on_loop for _, on_loop in recorder.calls)
