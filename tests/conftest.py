"""Test harness configuration.

This repo uses a `src/` layout. In some developer environments an older
installed `slashbot` package can shadow the local sources.

Ensure tests always import the in-repo code.
"""

from __future__ import annotations

import json
import queue
import sys
import time
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS = 30


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    src_path = str(src_dir)
    if sys.path[:1] != [src_path] and src_path not in sys.path:
        sys.path.insert(0, src_path)


def pytest_collection_modifyitems(
    session: pytest.Session, config: pytest.Config, items: list[pytest.Item]
) -> None:
    """
    Apply a default per-test timeout to non-integration tests.

    The driver tests start real threads; a hung join should fail the test
    instead of the whole run.
    """
    _ = session, config
    for item in items:
        if item.get_closest_marker("integration") is not None:
            continue
        item.add_marker(pytest.mark.timeout(DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS))


class FakeClock:
    """Monotonic clock stepped in whole milliseconds."""

    def __init__(self, start_ms: int = 0) -> None:
        self.elapsed_ms = start_ms

    def __call__(self) -> float:
        return self.elapsed_ms / 1000.0

    def advance_ms(self, milliseconds: int) -> None:
        self.elapsed_ms += milliseconds


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


class FakeTransport:
    """In-memory gateway transport fed from a queue.

    Queued items are returned by ``recv`` in order: strings as frames,
    ``None`` as an idle poll, callables are invoked and their result
    returned, and exceptions are raised.
    """

    def __init__(self, connect_error: Optional[BaseException] = None) -> None:
        self.inbound: "queue.Queue[Any]" = queue.Queue()
        self.sent: list[str] = []
        self.connect_error = connect_error
        self.address: Any = None
        self.closed = False
        self.close_calls = 0

    def push(self, *items: Any) -> None:
        for item in items:
            self.inbound.put(item)

    def connect(self, address: Any) -> None:
        self.address = address
        if self.connect_error is not None:
            raise self.connect_error

    def send(self, text: str) -> None:
        self.sent.append(text)

    def recv(self, timeout: float) -> Optional[str]:
        try:
            item = self.inbound.get(timeout=min(timeout, 0.05))
        except queue.Empty:
            return None
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item()
        return item

    def close(self) -> None:
        self.closed = True
        self.close_calls += 1

    @property
    def sent_frames(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture()
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def wait_for() -> Callable[..., bool]:
    return wait_until


@pytest.fixture()
def transport_cls() -> type[FakeTransport]:
    return FakeTransport
