# ─────────────────────────────────────────────────────────────────
# notifications.py — Logging Setup & Real-Time Fan-out
#
# All push-notification logic lives here. Route handlers only ever
# call broadcaster.emit(...) / emit_to(...); they never know which
# sockets are connected or how frames are delivered.
#
# DELIVERY CONTRACT
#   - fire-and-forget, at-most-once
#   - no acknowledgement, no retry, no replay
#   - a listener that is not connected when an event fires never
#     sees it
#
# Each connected client gets a Subscriber with its own bounded queue.
# Emitting puts a frame on every matching queue with put_nowait; a
# full or closed queue drops the frame. Emitting never awaits, so a
# handler's "mutate then notify" runs to completion before any other
# handler gets the event loop.
# ─────────────────────────────────────────────────────────────────

import asyncio
import itertools
import logging
from typing import Any, Dict, Iterable, Optional, Set

from fastapi.encoders import jsonable_encoder

# ── LOGGING CONFIGURATION ─────────────────────────────────────────
# %(asctime)s    → timestamp
# %(levelname)s  → severity
# %(name)s       → which logger sent this e.g. "notifications"
# %(message)s    → the actual message
LOG_FORMAT = "%(asctime)s — %(levelname)s — [%(name)s] — %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)


logger = logging.getLogger("notifications")

# ── EVENT CATALOGUE ───────────────────────────────────────────────
NEW_ALERT = "new-alert"
ALERT_UPDATED = "alert-updated"
NEW_REPORT = "new-report"
REPORT_UPDATED = "report-updated"
NODE_CREATED = "node-created"
NODE_UPDATED = "node-updated"
SENSOR_UPDATE = "sensor-update"
BROADCAST = "broadcast"
DRAINAGE_DATA = "drainage-data"
PONG = "pong"

ADMIN_ROOM = "admin"


class Subscriber:
    """One connected listener (normally one WebSocket)."""

    _seq = itertools.count(1)

    def __init__(self, maxsize: int = 100, name: Optional[str] = None):
        self.id = name or f"sub-{next(Subscriber._seq)}"
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.rooms: Set[str] = set()
        self.closed = False
        self.dropped = 0

    def send(self, event: str, payload: Any = None) -> bool:
        """
        Point-to-point emission to this subscriber only.
        Returns False when the frame was dropped.
        """

        return self.deliver({"event": event, "data": jsonable_encoder(payload)})

    def deliver(self, frame: Dict[str, Any]) -> bool:
        if self.closed:
            self.dropped += 1
            return False
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"📭 Dropped '{frame['event']}' for {self.id} — queue full")
            return False
        return True

    def drain(self) -> list:
        """Pops every frame currently queued (non-blocking)."""
        frames = []
        while not self.queue.empty():
            frames.append(self.queue.get_nowait())
        return frames

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"<Subscriber {self.id} rooms={sorted(self.rooms)}>"


class Broadcaster:
    """Registry of subscribers grouped by room."""

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self.subscribers: Set[Subscriber] = set()
        self.rooms: Dict[str, Set[Subscriber]] = {}

    # ── REGISTRY ──────────────────────────────────────────────────

    def subscribe(self, subscriber: Optional[Subscriber] = None) -> Subscriber:
        subscriber = subscriber or Subscriber(maxsize=self.queue_size)
        self.subscribers.add(subscriber)
        logger.info(f"🔌 Client connected: {subscriber.id}")
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        subscriber.close()
        self.subscribers.discard(subscriber)
        for room in list(subscriber.rooms):
            self.leave(subscriber, room)
        logger.info(f"🔌 Client disconnected: {subscriber.id}")

    def join(self, subscriber: Subscriber, room: str) -> None:
        self.rooms.setdefault(room, set()).add(subscriber)
        subscriber.rooms.add(room)
        logger.info(f"🚪 {subscriber.id} joined room: {room}")

    def leave(self, subscriber: Subscriber, room: str) -> None:
        members = self.rooms.get(room)
        if members is not None:
            members.discard(subscriber)
            if not members:
                del self.rooms[room]
        subscriber.rooms.discard(room)

    def members(self, room: str) -> Set[Subscriber]:
        return set(self.rooms.get(room, ()))

    # ── EMISSION ──────────────────────────────────────────────────

    def emit(self, event: str, payload: Any = None) -> int:
        """Global broadcast. Returns how many subscribers accepted it."""
        return self._fan_out(self.subscribers, event, payload, scope="all")

    def emit_to(self, room: str, event: str, payload: Any = None) -> int:
        """Broadcast to the members of one room."""
        return self._fan_out(self.members(room), event, payload, scope=f"room:{room}")

    def emit_from(self, sender: Subscriber, room: str, event: str, payload: Any = None) -> int:
        """Room broadcast that skips the connection the event came from."""
        targets = self.members(room) - {sender}
        return self._fan_out(targets, event, payload, scope=f"room:{room}")

    def _fan_out(self, targets: Iterable[Subscriber], event: str, payload: Any, scope: str) -> int:
        # Encode once: every listener sees the record as it was at
        # emission time, not after later mutations.
        frame = {"event": event, "data": jsonable_encoder(payload)}
        targets = list(targets)
        delivered = sum(1 for sub in targets if sub.deliver(frame))
        logger.info(f"📣 {event} → {scope} ({delivered}/{len(targets)} delivered)")
        return delivered
