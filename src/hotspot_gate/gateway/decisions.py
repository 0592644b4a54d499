"""Approval decisions, parsed once from Telegram callback data."""

from __future__ import annotations

from dataclasses import dataclass

from hotspot_gate.core.exceptions import InvalidDecision

_SEPARATOR = "|"
_TOKEN_LENGTH = 32


@dataclass(frozen=True)
class Approve:
    token: str
    profile: str

    def to_callback_data(self) -> str:
        return _SEPARATOR.join(("APPROVE", self.token, self.profile))


@dataclass(frozen=True)
class Deny:
    token: str

    def to_callback_data(self) -> str:
        return _SEPARATOR.join(("DENY", self.token))


Decision = Approve | Deny


def _check_token(token: str, data: str) -> str:
    if len(token) != _TOKEN_LENGTH or any(c not in "0123456789abcdef" for c in token):
        raise InvalidDecision(data)
    return token


def parse_decision(data: str | None) -> Decision:
    """Parse ``APPROVE|<token>|<profile>`` or ``DENY|<token>``.

    Profile validity is the ledger's call; this only checks shape.
    """
    if not data:
        raise InvalidDecision(data or "")
    parts = data.split(_SEPARATOR)
    action = parts[0].upper()

    if action == "APPROVE" and len(parts) == 3 and parts[2]:
        return Approve(token=_check_token(parts[1], data), profile=parts[2])
    if action == "DENY" and len(parts) == 2:
        return Deny(token=_check_token(parts[1], data))
    raise InvalidDecision(data)
