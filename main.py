# ─────────────────────────────────────────────────────────────────
# main.py — Application Entry Point
#
# Builds the FastAPI app, wires the shared objects onto app.state,
# mounts the routers and exposes the real-time socket at /ws.
#
# Run:
#     uvicorn main:app --reload --port 3000
# or simply:
#     python main.py
#
# Swagger: http://localhost:3000/docs
# ─────────────────────────────────────────────────────────────────

import asyncio
import json
import logging
import time
from typing import Optional

from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from auth import make_password_context
from config import Settings, load_settings
from database import Store
from errors import ok, register_error_handlers
from ids import utcnow
from notifications import (
    ADMIN_ROOM,
    DRAINAGE_DATA,
    NEW_REPORT,
    PONG,
    Broadcaster,
    Subscriber,
    configure_logging,
)
from routes import admin as admin_routes
from routes import alerts as alert_routes
from routes import auth as auth_routes
from routes import citizen as citizen_routes
from routes import drainage as drainage_routes

logger = logging.getLogger("server")

SEED_PASSWORD = "admin123"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="HydroNexus API",
        description="Drainage monitoring: sensor status, alerts, citizen reports and live updates",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── SHARED STATE ──────────────────────────────────────────────
    app.state.settings = settings
    app.state.pwd_context = make_password_context(settings.bcrypt_rounds)
    app.state.store = Store()
    app.state.broadcaster = Broadcaster(queue_size=settings.subscriber_queue_size)

    # Collections are rebuilt from the seed on every start
    app.state.store.seed(app.state.pwd_context.hash(SEED_PASSWORD))

    register_error_handlers(app)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed:.1f}ms")
        return response

    for module in (auth_routes, drainage_routes, alert_routes, citizen_routes, admin_routes):
        app.include_router(module.router)

    # ─────────────────────────────────────────────────────────────
    # HEALTH
    # ─────────────────────────────────────────────────────────────

    @app.get("/", tags=["Health"])
    async def root():
        return ok({"name": "HydroNexus API", "version": "1.0.0", "docs": "/docs"},
                  message="HydroNexus API is running")

    @app.get("/api/health", tags=["Health"])
    async def health():
        store = app.state.store
        return ok({
            "status": "ok",
            "timestamp": utcnow(),
            "connections": len(app.state.broadcaster.subscribers),
            "collections": {name: len(c) for name, c in store.collections().items()},
        })

    # ─────────────────────────────────────────────────────────────
    # WEBSOCKET — real-time channel
    # ─────────────────────────────────────────────────────────────

    @app.websocket("/ws")
    async def realtime(ws: WebSocket):
        """
        One subscriber per browser session.

        Server frames:  {"event": "<name>", "data": {...}}
        Client frames:
          {"event": "join-room", "data": "admin"}
          {"event": "leave-room", "data": "admin"}
          {"event": "drainage-update", "data": {...}}  → admin room as drainage-data
          {"event": "citizen-report", "data": {...}}   → admin room as new-report
          "ping" or {"event": "ping"}                   → {"event": "pong"}
        """

        broadcaster: Broadcaster = app.state.broadcaster
        await ws.accept()
        subscriber = broadcaster.subscribe()
        sender = asyncio.create_task(_pump(ws, subscriber))

        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    subscriber.send("error", {"message": "Frames must be text"})
                    continue
                _handle_client_frame(broadcaster, subscriber, text)
        finally:
            broadcaster.unsubscribe(subscriber)
            sender.cancel()

    logger.info(f"🌊 HydroNexus API ready ({settings.app_env})")
    return app


async def _pump(ws: WebSocket, subscriber: Subscriber):
    """Moves queued frames from a subscriber onto its socket."""
    try:
        while True:
            frame = await subscriber.queue.get()
            await ws.send_json(frame)
    except asyncio.CancelledError:
        return
    except Exception as exc:
        # Socket went away mid-send; the receive loop cleans up
        logger.info(f"Stopped sending to {subscriber.id}: {exc!r}")
        subscriber.close()


def _handle_client_frame(broadcaster: Broadcaster, subscriber: Subscriber, raw: str) -> None:
    if raw == "ping":
        subscriber.send(PONG)
        return

    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        subscriber.send("error", {"message": "Frames must be JSON"})
        return
    if not isinstance(message, dict):
        subscriber.send("error", {"message": "Frames must be JSON objects"})
        return

    event = message.get("event")
    data = message.get("data")

    if event == "ping":
        subscriber.send(PONG)
    elif event == "join-room" and isinstance(data, str) and data:
        broadcaster.join(subscriber, data)
    elif event == "leave-room" and isinstance(data, str):
        broadcaster.leave(subscriber, data)
    elif event == "drainage-update":
        broadcaster.emit_from(subscriber, ADMIN_ROOM, DRAINAGE_DATA, data)
    elif event == "citizen-report":
        broadcaster.emit_from(subscriber, ADMIN_ROOM, NEW_REPORT, data)
    else:
        subscriber.send("error", {"message": f"Unknown event '{event}'"})


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host=app.state.settings.host, port=app.state.settings.port)
