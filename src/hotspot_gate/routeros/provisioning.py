"""Hotspot user provisioning over the RouterOS API."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from hotspot_gate.core.exceptions import ProvisioningFatal, ProvisioningRejected
from hotspot_gate.observability.metrics import PROVISION_DURATION, PROVISION_RESULTS
from hotspot_gate.routeros.codec import REPLY_FATAL, REPLY_TRAP, parse_reply
from hotspot_gate.routeros.session import DEFAULT_API_PORT, ApiSession

logger = logging.getLogger(__name__)

HOTSPOT_USER_ADD = "/ip/hotspot/user/add"


@dataclass(frozen=True)
class RouterTarget:
    """Where and as whom to reach the router API."""

    host: str
    username: str
    password: str
    port: int = DEFAULT_API_PORT
    connect_timeout: float = 5.0
    read_timeout: float = 10.0

    def open_session(self) -> ApiSession:
        return ApiSession(
            self.host,
            self.port,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
        )


def build_user_add(
    username: str,
    password: str,
    profile: str | None = None,
    mac_address: str | None = None,
    comment: str | None = None,
    server_name: str | None = None,
) -> list[str]:
    """Build the ``/ip/hotspot/user/add`` sentence, skipping empty optional fields."""
    words = [HOTSPOT_USER_ADD, f"=name={username}", f"=password={password}"]
    optional = (
        ("profile", profile),
        ("server", server_name),
        ("mac-address", mac_address),
        ("comment", comment),
    )
    words.extend(f"={key}={value}" for key, value in optional if value)
    return words


def provision_access(
    target: RouterTarget,
    username: str,
    password: str,
    profile: str | None = None,
    mac_address: str | None = None,
    comment: str | None = None,
    server_name: str | None = None,
) -> list[list[str]]:
    """Create a hotspot user on the router.

    Opens a fresh session, logs in, and issues one user-add command.  The
    session is closed on every exit path.  Nothing is retried.

    Returns:
        All reply sentences of the user-add command (ending in ``!done``).

    Raises:
        ProvisioningRejected: the router answered ``!trap`` (e.g. duplicate
            user); the router's message is carried verbatim.
        ProvisioningFatal: the router answered ``!fatal``.
        RouterError: any connect, auth, read or write failure.
    """
    started = time.perf_counter()
    outcome = "error"
    try:
        with target.open_session() as session:
            session.login(target.username, target.password)
            replies = session.talk(
                build_user_add(username, password, profile, mac_address, comment, server_name)
            )

        terminal = replies[-1]
        if terminal[0] == REPLY_TRAP:
            outcome = "rejected"
            message = parse_reply(terminal).message or "command rejected"
            logger.warning("Router rejected hotspot user %s: %s", username, message)
            raise ProvisioningRejected(message, replies)
        if terminal[0] == REPLY_FATAL:
            outcome = "fatal"
            message = parse_reply(terminal).message or (terminal[1] if len(terminal) > 1 else "fatal")
            logger.error("Router returned !fatal for hotspot user %s: %s", username, message)
            raise ProvisioningFatal(message, replies)

        outcome = "ok"
        logger.info(
            "Provisioned hotspot user %s (profile=%s, mac=%s) on %s",
            username, profile, mac_address, target.host,
        )
        return replies
    finally:
        PROVISION_RESULTS.labels(outcome=outcome).inc()
        PROVISION_DURATION.observe(time.perf_counter() - started)
