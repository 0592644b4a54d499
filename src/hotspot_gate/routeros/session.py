"""RouterOS API session — one socket, one request/reply cycle, login handshake."""

from __future__ import annotations

import hashlib
import logging
import selectors
import socket
import time
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

from hotspot_gate.core.exceptions import (
    AuthenticationFailed,
    ConnectError,
    ConnectTimeout,
    ReadError,
    ReadTimeout,
    RouterError,
    SessionStateError,
    WriteError,
)
from hotspot_gate.routeros.codec import (
    DEFAULT_MAX_SENTENCE_SIZE,
    REPLY_DONE,
    encode_sentence,
    is_terminal,
    parse_reply,
    try_parse_sentence,
)

logger = logging.getLogger(__name__)

DEFAULT_API_PORT = 8728
_RECV_CHUNK = 4096


class SessionState(Enum):
    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


_ACTIVE_STATES = (SessionState.CONNECTED, SessionState.AUTHENTICATED)


def md5_challenge_response(password: str, challenge_hex: str) -> str:
    """Legacy (pre-6.43) login: ``"00" + md5(0x00 + password + challenge)``."""
    h = hashlib.md5()
    h.update(b"\x00")
    h.update(password.encode("utf-8"))
    h.update(bytes.fromhex(challenge_hex))
    return "00" + h.hexdigest()


class ApiSession:
    """
    A single RouterOS API connection.

    Sessions are never pooled or reused: build one per operation, use it in a
    ``with`` block, and let it close.  Any I/O or protocol failure closes the
    socket before the error reaches the caller, so a failed session only
    ever needs ``close()`` (which is idempotent).

    Usage:
        with ApiSession("192.168.88.1") as session:
            session.login("api", "secret")
            replies = session.talk(["/system/identity/print"])
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_API_PORT,
        connect_timeout: float = 5.0,
        read_timeout: float = 10.0,
        max_sentence_size: int = DEFAULT_MAX_SENTENCE_SIZE,
    ) -> None:
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_sentence_size = max_sentence_size
        self.state = SessionState.UNCONNECTED
        self._sock: socket.socket | None = None
        self._selector: selectors.BaseSelector | None = None
        self._buffer = bytearray()

    def __enter__(self) -> ApiSession:
        if self.state is SessionState.UNCONNECTED:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ApiSession({self.host}:{self.port}, state={self.state.value})"

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        if self.state is not SessionState.UNCONNECTED:
            raise SessionStateError("connect", self.state.value)

        self.state = SessionState.CONNECTING
        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
        except TimeoutError as exc:
            self.close()
            raise ConnectTimeout(self.host, self.port, self.connect_timeout) from exc
        except OSError as exc:
            self.close()
            raise ConnectError(self.host, self.port, str(exc)) from exc

        # sendall is bounded by the read timeout; reads go through the selector
        sock.settimeout(self.read_timeout)
        self._sock = sock
        self._selector = selectors.DefaultSelector()
        self._selector.register(sock, selectors.EVENT_READ)
        self.state = SessionState.CONNECTED
        logger.debug("Connected to %s:%s", self.host, self.port)

    def close(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                logger.debug("Error closing socket to %s:%s", self.host, self.port, exc_info=True)
            self._sock = None
        self._buffer.clear()
        logger.debug("Session to %s:%s closed", self.host, self.port)

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    @contextmanager
    def _closing_on_error(self) -> Iterator[None]:
        try:
            yield
        except RouterError:
            self.close()
            raise

    def _require_active(self, operation: str) -> None:
        if self.state not in _ACTIVE_STATES:
            raise SessionStateError(operation, self.state.value)

    # ------------------------------------------------------------------
    # Sentence I/O
    # ------------------------------------------------------------------

    def send(self, words: list[str]) -> None:
        self._require_active("send")
        with self._closing_on_error():
            try:
                self._sock.sendall(encode_sentence(words))
            except OSError as exc:
                raise WriteError(f"Write to {self.host}:{self.port} failed: {exc}") from exc
            logger.debug("-> %s", words)

    def receive_sentence(self, timeout: float | None = None) -> list[str]:
        """Return the next complete sentence, waiting at most ``timeout`` seconds.

        Bytes may arrive split across any number of reads; whatever is left
        after the returned sentence stays buffered for the next call.
        """
        self._require_active("receive")
        timeout = self.read_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout

        with self._closing_on_error():
            while True:
                parsed = try_parse_sentence(self._buffer, self.max_sentence_size)
                if parsed is not None:
                    words, consumed = parsed
                    del self._buffer[:consumed]
                    logger.debug("<- %s", words)
                    return words

                remaining = deadline - time.monotonic()
                if remaining <= 0 or not self._selector.select(remaining):
                    raise ReadTimeout(timeout, len(self._buffer))

                try:
                    chunk = self._sock.recv(_RECV_CHUNK)
                except OSError as exc:
                    raise ReadError(f"Read from {self.host}:{self.port} failed: {exc}") from exc
                if not chunk:
                    raise ReadError(
                        f"Connection to {self.host}:{self.port} closed by peer",
                        {'buffered_bytes': len(self._buffer)},
                    )
                self._buffer.extend(chunk)

    def talk(self, words: list[str], timeout: float | None = None) -> list[list[str]]:
        """Send one request and collect replies up to and including the terminal one.

        ``timeout`` bounds each individual sentence, not the whole exchange.
        """
        self._require_active("talk")
        self.send(words)
        replies: list[list[str]] = []
        while True:
            sentence = self.receive_sentence(timeout)
            replies.append(sentence)
            if is_terminal(sentence):
                return replies

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> list[list[str]]:
        self._require_active("login")
        replies = self.talk(["/login", f"=name={username}", f"=password={password}"])
        terminal = replies[-1]

        if terminal[0] == REPLY_DONE:
            challenge = parse_reply(terminal).attributes.get("ret")
            if challenge:
                # pre-6.43 routers answer with a challenge instead of logging in
                try:
                    response = md5_challenge_response(password, challenge)
                except ValueError as exc:
                    self.close()
                    raise AuthenticationFailed(
                        f"Login as {username!r} failed: unreadable challenge {challenge!r}", replies,
                    ) from exc
                replies = self.talk(["/login", f"=name={username}", f"=response={response}"])
                terminal = replies[-1]

        if terminal[0] != REPLY_DONE:
            self.close()
            message = parse_reply(terminal).message or terminal[0]
            raise AuthenticationFailed(f"Login as {username!r} failed: {message}", replies)

        self.state = SessionState.AUTHENTICATED
        logger.info("Authenticated to %s:%s as %s", self.host, self.port, username)
        return replies
