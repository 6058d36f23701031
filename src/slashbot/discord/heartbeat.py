from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..core.logging_utils import log_event
from .constants import GATEWAY_OP_HEARTBEAT


def build_heartbeat_payload() -> dict[str, Any]:
    return {"op": GATEWAY_OP_HEARTBEAT, "d": None}


@dataclass(frozen=True)
class HeartbeatSnapshot:
    interval_ms: int
    last_sent_at: Optional[float]
    last_ack_at: Optional[float]
    acknowledged: bool
    latency_ms: Optional[int]


class HeartbeatMonitor:
    """Liveness bookkeeping for one gateway session.

    The driver thread writes send/ack times; host threads read latency.
    Every read and every compound write happens under ``_lock`` so a reader
    never sees a new send time paired with a stale acknowledged flag.

    A missing ACK only produces a warning; the session is never torn down
    because of it.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._interval_ms = 0
        self._started_at: Optional[float] = None
        self._last_sent_at: Optional[float] = None
        self._last_ack_at: Optional[float] = None
        self._acknowledged = False
        self._latency_ms: Optional[int] = None

    def reset(self) -> None:
        with self._lock:
            self._interval_ms = 0
            self._started_at = None
            self._last_sent_at = None
            self._last_ack_at = None
            self._acknowledged = False
            self._latency_ms = None

    def start(self, interval_ms: int) -> None:
        """Adopt the interval from HELLO; the first beat is due one interval later."""
        if interval_ms <= 0:
            raise ValueError("heartbeat interval must be positive")
        with self._lock:
            self._interval_ms = int(interval_ms)
            self._started_at = self._clock()

    @property
    def interval_ms(self) -> int:
        with self._lock:
            return self._interval_ms

    def _due_locked(self, now: float) -> bool:
        if self._interval_ms <= 0:
            return False
        reference = self._last_sent_at
        if reference is None:
            reference = self._started_at
        if reference is None:
            return False
        return (now - reference) * 1000.0 >= self._interval_ms

    def is_due(self) -> bool:
        with self._lock:
            return self._due_locked(self._clock())

    def beat_if_due(self, send: Callable[[str], None]) -> bool:
        """Send one HEARTBEAT frame when an interval has elapsed since the last one."""
        with self._lock:
            now = self._clock()
            if not self._due_locked(now):
                return False
            missed_ack = self._last_sent_at is not None and not self._acknowledged
            self._last_sent_at = now
            self._acknowledged = False
            interval_ms = self._interval_ms
        if missed_ack:
            log_event(
                self._logger,
                logging.WARNING,
                "discord.gateway.heartbeat.ack_missing",
                interval_ms=interval_ms,
            )
        send(json.dumps(build_heartbeat_payload()))
        return True

    def record_ack(self) -> Optional[int]:
        with self._lock:
            now = self._clock()
            sent_at = self._last_sent_at
            pending = not self._acknowledged
            self._last_ack_at = now
            self._acknowledged = True
            if pending and sent_at is not None and now >= sent_at:
                self._latency_ms = int(round((now - sent_at) * 1000.0))
            return self._latency_ms

    def latency_ms(self) -> Optional[int]:
        with self._lock:
            return self._latency_ms

    def snapshot(self) -> HeartbeatSnapshot:
        with self._lock:
            return HeartbeatSnapshot(
                interval_ms=self._interval_ms,
                last_sent_at=self._last_sent_at,
                last_ack_at=self._last_ack_at,
                acknowledged=self._acknowledged,
                latency_ms=self._latency_ms,
            )
