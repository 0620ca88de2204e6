import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app
from notifications import ADMIN_ROOM


@pytest.fixture
def settings():
    return Settings(app_env="test", jwt_secret="test-secret", bcrypt_rounds=4)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    # Entering the client keeps one event loop for HTTP and WebSocket calls
    with TestClient(app) as c:
        yield c


@pytest.fixture
def store(app):
    return app.state.store


@pytest.fixture
def broadcaster(app):
    return app.state.broadcaster


@pytest.fixture
def listener(broadcaster):
    """A global subscriber that records every event."""
    return broadcaster.subscribe()


@pytest.fixture
def admin_listener(broadcaster):
    sub = broadcaster.subscribe()
    broadcaster.join(sub, ADMIN_ROOM)
    return sub


def login(client, email, password="admin123"):
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["token"]


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client):
    return bearer(login(client, "admin@hydronexus.com"))


@pytest.fixture
def citizen_headers(client):
    return bearer(login(client, "citizen@example.com"))


@pytest.fixture
def register(client):
    """Registers a new citizen and returns (user_id, headers)."""

    def _register(username, email=None, password="secret123"):
        resp = client.post("/api/auth/register", json={
            "username": username,
            "email": email or f"{username}@example.com",
            "password": password,
        })
        assert resp.status_code == 201, resp.text
        data = resp.json()["data"]
        return data["user"]["id"], bearer(data["token"])

    return _register


@pytest.fixture
def operator_headers(client, store, register):
    user_id, _ = register("operator1")
    store.users.get_by_id(user_id)["role"] = "operator"
    return bearer(login(client, "operator1@example.com", "secret123"))


def events(subscriber, name=None):
    frames = subscriber.drain()
    if name is None:
        return frames
    return [f for f in frames if f["event"] == name]
