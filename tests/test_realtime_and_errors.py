import json

from fastapi.testclient import TestClient

from config import Settings
from main import create_app


def _sync(ws):
    # Frames are handled in order, so a pong means everything sent before it was processed
    ws.send_text("ping")
    assert ws.receive_json() == {"event": "pong", "data": None}


def test_socket_receives_global_events(client, citizen_headers):
    with client.websocket_connect("/ws") as ws:
        _sync(ws)
        client.post("/api/drainage/DN0001/sensor-data", json={"waterLevel": 71}, headers=citizen_headers)

        frame = ws.receive_json()
        assert frame["event"] == "sensor-update"
        assert frame["data"]["nodeId"] == "DN0001"
        assert frame["data"]["operationalStatus"] == "warning"


def test_admin_room_membership(client, citizen_headers):
    with client.websocket_connect("/ws") as admin_ws, client.websocket_connect("/ws") as public_ws:
        admin_ws.send_text(json.dumps({"event": "join-room", "data": "admin"}))
        _sync(admin_ws)
        _sync(public_ws)

        client.post("/api/citizen/reports", headers=citizen_headers, json={
            "reportType": "overflow",
            "severity": "low",
            "title": "Overflowing drain",
            "description": "Minor overflow",
            "location": {"coordinates": {"lat": 28.6, "lng": 77.2}},
        })

        frame = admin_ws.receive_json()
        assert frame["event"] == "new-report"

        # The public socket got nothing: its next frame is the pong
        _sync(public_ws)


def test_client_relay_goes_to_other_admins(client):
    with client.websocket_connect("/ws") as sender, client.websocket_connect("/ws") as admin_ws:
        sender.send_text(json.dumps({"event": "join-room", "data": "admin"}))
        admin_ws.send_text(json.dumps({"event": "join-room", "data": "admin"}))
        _sync(sender)
        _sync(admin_ws)

        sender.send_text(json.dumps({"event": "drainage-update", "data": {"nodeId": "DN0002"}}))
        _sync(sender)

        assert admin_ws.receive_json() == {"event": "drainage-data", "data": {"nodeId": "DN0002"}}


def test_bad_frames_get_error_replies(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        assert ws.receive_json()["event"] == "error"
        ws.send_text(json.dumps({"event": "teleport"}))
        assert ws.receive_json()["data"]["message"] == "Unknown event 'teleport'"


def test_binary_frames_get_error_reply_and_socket_stays_open(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        frame = ws.receive_json()
        assert frame == {"event": "error", "data": {"message": "Frames must be text"}}
        _sync(ws)


def test_disconnect_unsubscribes(client, broadcaster):
    with client.websocket_connect("/ws") as ws:
        _sync(ws)
        assert len(broadcaster.subscribers) == 1
    client.get("/api/health")
    assert len(broadcaster.subscribers) == 0


def test_unknown_route_envelope(client):
    resp = client.get("/api/nowhere")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Route not found"}


def test_health(client):
    data = client.get("/api/health").json()["data"]
    assert data["status"] == "ok"
    assert data["collections"]["drainageNodes"] == 5


def _boom_app(env):
    app = create_app(Settings(app_env=env, bcrypt_rounds=4))

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    return app


def test_internal_error_hides_stack_outside_development():
    with TestClient(_boom_app("production"), raise_server_exceptions=False) as c:
        resp = c.get("/boom")
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Something went wrong!"}


def test_internal_error_includes_stack_in_development():
    with TestClient(_boom_app("development"), raise_server_exceptions=False) as c:
        resp = c.get("/boom")
    body = resp.json()
    assert resp.status_code == 500
    assert body["message"] == "Something went wrong!"
    assert "kaboom" in body["stack"]


def test_cors_allows_configured_origin():
    app = create_app(Settings(cors_origin="https://city.example", bcrypt_rounds=4))
    with TestClient(app) as c:
        allowed = c.get("/api/health", headers={"Origin": "https://city.example"})
        other = c.get("/api/health", headers={"Origin": "https://elsewhere.example"})
    assert allowed.headers["access-control-allow-origin"] == "https://city.example"
    assert "access-control-allow-origin" not in other.headers


def test_cors_wildcard_by_default(client):
    resp = client.get("/api/health", headers={"Origin": "https://anywhere.example"})
    assert "access-control-allow-origin" in resp.headers
