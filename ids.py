# ─────────────────────────────────────────────────────────────────
# ids.py — Identifier Service
#
# Human-facing codes (ALT202602250001, RPT2026020001) come from
# per-prefix counters that only ever move forward, so two records
# created in the same instant can never share a code. The date
# part is for people reading the code, not for uniqueness.
# ─────────────────────────────────────────────────────────────────

import itertools
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_object_id() -> str:
    """Opaque internal id for any record (`_id`)."""
    return uuid.uuid4().hex


class IdGenerator:
    """
    Hands out `<PREFIX><STAMP><NNNN>` codes.

    The sequence number is monotonic for the lifetime of the process
    and is NOT reset when the date stamp rolls over.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or utcnow
        self._counters: Dict[str, Iterator[int]] = {}

    def _next(self, prefix: str) -> int:
        if prefix not in self._counters:
            self._counters[prefix] = itertools.count(1)
        return next(self._counters[prefix])

    def alert_id(self) -> str:
        stamp = self._clock().strftime("%Y%m%d")
        return f"ALT{stamp}{self._next('ALT'):04d}"

    def report_id(self) -> str:
        stamp = self._clock().strftime("%Y%m")
        return f"RPT{stamp}{self._next('RPT'):04d}"
