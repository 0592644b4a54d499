"""Request records and the approval state machine."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any


class RequestState(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    SENT = "SENT"
    CONSUMED = "CONSUMED"
    ERROR = "ERROR"


# Allowed forward moves; anything absent here is refused.
TRANSITIONS: dict[RequestState, frozenset[RequestState]] = {
    RequestState.PENDING: frozenset({RequestState.APPROVED, RequestState.DENIED}),
    RequestState.APPROVED: frozenset({RequestState.SENT, RequestState.CONSUMED, RequestState.ERROR}),
    # SENT -> ERROR: direct provisioning claims the record before talking to
    # the router, so a failed attempt is reported from SENT
    RequestState.SENT: frozenset({RequestState.CONSUMED, RequestState.ERROR}),
    RequestState.DENIED: frozenset(),
    RequestState.CONSUMED: frozenset(),
    RequestState.ERROR: frozenset(),
}

TERMINAL_STATES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def can_transition(current: RequestState, target: RequestState) -> bool:
    return target in TRANSITIONS[current]


_TIMESTAMP_FIELDS = ("created_at", "approved_at", "denied_at", "sent_at", "consumed_at", "errored_at")


@dataclass
class RequestRecord:
    """One access request, from creation to its terminal state."""

    token: str
    mac: str
    created_at: datetime
    state: RequestState = RequestState.PENDING
    ip: str | None = None
    requested_profile: str | None = None
    profile: str | None = None
    login: str | None = None
    dst: str | None = None
    approved_at: datetime | None = None
    denied_at: datetime | None = None
    sent_at: datetime | None = None
    consumed_at: datetime | None = None
    errored_at: datetime | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def copy(self) -> RequestRecord:
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, RequestState):
                value = value.value
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any], token: str | None = None) -> RequestRecord:
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if token is not None:
            values["token"] = token
        values["state"] = RequestState(values.get("state", RequestState.PENDING))
        for name in _TIMESTAMP_FIELDS:
            raw = values.get(name)
            if isinstance(raw, str):
                values[name] = datetime.fromisoformat(raw)
        return cls(**values)
