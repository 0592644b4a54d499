"""
Pytest configuration for hotspot-gate tests — validates the environment,
registers markers, and provides shared ledger, notifier and router fixtures.
"""

import socket
import sys
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

# =============================================================================
# SHARED FIXTURES
# =============================================================================


class StepClock:
    """Deterministic clock: every call returns one second later than the last."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def memory_store():
    from hotspot_gate.persistence import InMemoryStore

    return InMemoryStore()


@pytest.fixture
def ledger(memory_store, clock):
    from hotspot_gate.ledger import TokenLedger

    return TokenLedger(store=memory_store, allowed_profiles=("1h", "3h"), clock=clock)


@pytest.fixture
def mock_notifier():
    """Notifier double whose admin chat is "42"."""
    notifier = MagicMock()
    notifier.start = AsyncMock()
    notifier.stop = AsyncMock()
    notifier.notify_request = AsyncMock()
    notifier.answer = AsyncMock()
    notifier.edit_decision = AsyncMock()
    notifier.set_webhook = AsyncMock(return_value=True)
    notifier.is_admin_chat = MagicMock(side_effect=lambda chat_id: str(chat_id) == "42")
    return notifier


# =============================================================================
# FAKE ROUTER
# =============================================================================

Responder = Callable[[list[str]], list[list[str]] | None]


class FakeRouter:
    """
    Loopback RouterOS API peer for one client connection.

    ``responder`` gets every decoded request sentence and returns the reply
    sentences to send, ``None`` to stay silent, or ``[]`` to hang up.
    With ``chunk_size`` set, replies are written that many bytes at a time
    so the client sees split reads.
    """

    def __init__(self, responder: Responder, chunk_size: int | None = None):
        self.responder = responder
        self.chunk_size = chunk_size
        self.received: list[list[str]] = []
        self.client_closed = threading.Event()
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(1)
        self._listener.settimeout(5)
        self.host, self.port = self._listener.getsockname()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def start(self) -> "FakeRouter":
        self._thread.start()
        return self

    def stop(self) -> None:
        self._listener.close()
        self._thread.join(timeout=5)

    def _send(self, conn: socket.socket, payload: bytes) -> None:
        if not self.chunk_size:
            conn.sendall(payload)
            return
        for i in range(0, len(payload), self.chunk_size):
            conn.sendall(payload[i:i + self.chunk_size])

    def _serve(self) -> None:
        from hotspot_gate.routeros.codec import encode_sentence, try_parse_sentence

        try:
            conn, _ = self._listener.accept()
        except OSError:
            return
        with conn:
            conn.settimeout(5)
            buffer = bytearray()
            hang_up = False
            while not hang_up:
                try:
                    data = conn.recv(4096)
                except OSError:
                    break
                if not data:
                    break
                buffer.extend(data)
                while (parsed := try_parse_sentence(buffer)) is not None:
                    words, consumed = parsed
                    del buffer[:consumed]
                    self.received.append(words)
                    replies = self.responder(words)
                    if replies == []:
                        hang_up = True
                        break
                    if replies:
                        self._send(conn, b"".join(encode_sentence(r) for r in replies))
        self.client_closed.set()


@pytest.fixture
def fake_router():
    """Factory fixture: ``fake_router(responder, chunk_size=None)``."""
    routers: list[FakeRouter] = []

    def _make(responder: Responder, chunk_size: int | None = None) -> FakeRouter:
        router = FakeRouter(responder, chunk_size).start()
        routers.append(router)
        return router

    yield _make
    for router in routers:
        router.stop()


@pytest.fixture
def login_ok_then():
    """Wrap a responder so any ``/login`` is accepted; everything else goes to it."""

    def _wrap(handler: Responder) -> Responder:
        def _respond(words: list[str]) -> list[list[str]] | None:
            if words[0] == "/login":
                return [["!done"]]
            return handler(words)

        return _respond

    return _wrap


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Validate test environment."""
    missing = []
    for mod in ("httpx", "fastapi", "pydantic", "telegram", "prometheus_client"):
        try:
            __import__(mod)
        except ImportError:
            missing.append(mod)

    if missing:
        print(
            f"\n Missing dependencies: {', '.join(missing)}\n"
            " Run: pip install -e '.[test]'\n",
            file=sys.stderr,
        )
        raise SystemExit(1)
