"""
Token Ledger
============

Thread-safe mapping from opaque token to access request, enforcing the
approval state machine:

    (new) -> PENDING  -> APPROVED -> SENT -> CONSUMED | ERROR
             PENDING  -> DENIED
             APPROVED -> CONSUMED | ERROR

A single lock serialises every transition.  Each operation acquires it,
checks the current state, mutates, persists, and releases; no network I/O
ever happens while it is held.  Callers only ever receive copies of
records, never the live objects.
"""

from __future__ import annotations

import logging
import secrets
import threading
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from hotspot_gate.core.exceptions import InvalidProfile, UnknownToken
from hotspot_gate.observability.metrics import LEDGER_TRANSITIONS
from hotspot_gate.persistence.repositories import LedgerStore

from .models import RequestRecord, RequestState, can_transition

logger = logging.getLogger(__name__)

DEFAULT_PROFILES = ("1h", "3h")


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def new_token() -> str:
    """128 random bits as 32 lowercase hex characters."""
    return secrets.token_hex(16)


@dataclass
class Transition:
    """Outcome of a state-changing call: the record after the call, and
    whether this call was the one that moved it."""

    record: RequestRecord
    changed: bool


class TokenLedger:
    """In-memory request ledger, persisted through a ``LedgerStore``."""

    def __init__(
        self,
        store: LedgerStore | None = None,
        allowed_profiles: Iterable[str] = DEFAULT_PROFILES,
        clock: Callable[[], datetime] = _utcnow,
        token_factory: Callable[[], str] = new_token,
    ) -> None:
        self._store = store
        self.allowed_profiles = tuple(allowed_profiles)
        self._clock = clock
        self._token_factory = token_factory
        self._lock = threading.Lock()
        self._records: dict[str, RequestRecord] = {}

        if store is not None:
            for token, data in store.load().items():
                if not isinstance(data, dict):
                    logger.error("Skipping unreadable ledger record %s: not an object", token)
                    continue
                try:
                    self._records[token] = RequestRecord.from_dict(data, token=token)
                except (TypeError, ValueError) as e:
                    logger.error("Skipping unreadable ledger record %s: %s", token, e)

        logger.info(
            "TokenLedger initialized (%d records, profiles=%s)",
            len(self._records), ",".join(self.allowed_profiles),
        )

    # ------------------------------------------------------------------
    # Internal helpers (call with the lock held)
    # ------------------------------------------------------------------

    def _persist(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save(self._snapshot())
        except OSError as e:
            # in-memory state stays authoritative; the next save rewrites everything
            logger.error("Failed to persist ledger: %s", e)

    def _snapshot(self) -> dict[str, dict[str, Any]]:
        return {token: record.to_dict() for token, record in self._records.items()}

    def _get(self, token: str) -> RequestRecord:
        record = self._records.get(token)
        if record is None:
            raise UnknownToken(token)
        return record

    def _move(self, record: RequestRecord, target: RequestState) -> None:
        logger.info("Request %s: %s -> %s", record.token, record.state.value, target.value)
        record.state = target
        LEDGER_TRANSITIONS.labels(state=target.value).inc()

    def normalize_profile(self, profile: str | None) -> str:
        if profile is None:
            raise InvalidProfile(profile, self.allowed_profiles)
        candidate = profile.strip()
        if candidate not in self.allowed_profiles:
            raise InvalidProfile(profile, self.allowed_profiles)
        return candidate

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    def create(
        self,
        mac: str,
        ip: str | None = None,
        profile: str | None = None,
        login: str | None = None,
        dst: str | None = None,
    ) -> RequestRecord:
        """Register a new PENDING request under a fresh token.

        ``profile`` is what the client asked for; it is informational only,
        the administrator picks the profile that is applied at approval.
        """
        with self._lock:
            token = self._token_factory()
            while token in self._records:
                token = self._token_factory()
            record = RequestRecord(
                token=token,
                mac=mac,
                ip=ip,
                requested_profile=profile,
                login=login,
                dst=dst,
                created_at=self._clock(),
            )
            self._records[token] = record
            LEDGER_TRANSITIONS.labels(state=RequestState.PENDING.value).inc()
            self._persist()
            logger.info("Request %s created for mac=%s ip=%s", token, mac, ip or "-")
            return record.copy()

    def get(self, token: str) -> RequestRecord:
        with self._lock:
            return self._get(token).copy()

    def get_status(self, token: str) -> RequestRecord | None:
        with self._lock:
            record = self._records.get(token)
            return record.copy() if record else None

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def list_records(self, state: RequestState | None = None) -> list[RequestRecord]:
        """All records in creation order, optionally filtered by state."""
        with self._lock:
            return [
                r.copy() for r in self._records.values()
                if state is None or r.state is state
            ]

    def stats(self) -> dict[str, int]:
        with self._lock:
            counts = Counter(r.state.value for r in self._records.values())
        return {state.value: counts.get(state.value, 0) for state in RequestState}

    # ------------------------------------------------------------------
    # Human decision
    # ------------------------------------------------------------------

    def approve(self, token: str, profile: str) -> Transition:
        """PENDING -> APPROVED with the administrator's chosen profile.

        Raises UnknownToken or InvalidProfile; the record is untouched in
        both cases.  A record that is no longer PENDING is returned as-is.
        """
        with self._lock:
            record = self._get(token)
            chosen = self.normalize_profile(profile)
            if not can_transition(record.state, RequestState.APPROVED):
                logger.warning("Ignoring approve for %s in state %s", token, record.state.value)
                return Transition(record.copy(), False)
            self._move(record, RequestState.APPROVED)
            record.profile = chosen
            record.approved_at = self._clock()
            self._persist()
            return Transition(record.copy(), True)

    def deny(self, token: str) -> Transition:
        """PENDING -> DENIED.  Raises UnknownToken."""
        with self._lock:
            record = self._get(token)
            if not can_transition(record.state, RequestState.DENIED):
                logger.warning("Ignoring deny for %s in state %s", token, record.state.value)
                return Transition(record.copy(), False)
            self._move(record, RequestState.DENIED)
            record.denied_at = self._clock()
            self._persist()
            return Transition(record.copy(), True)

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    def claim_approved(self, limit: int) -> list[RequestRecord]:
        """Atomically move up to ``limit`` APPROVED records to SENT.

        Records are taken in creation order, so pollers see FIFO service.
        A record is handed out by exactly one call.
        """
        if limit <= 0:
            return []
        with self._lock:
            claimed = []
            now = self._clock()
            for record in self._records.values():
                if len(claimed) >= limit:
                    break
                if record.state is RequestState.APPROVED:
                    self._move(record, RequestState.SENT)
                    record.sent_at = now
                    claimed.append(record.copy())
            if claimed:
                self._persist()
            return claimed

    def claim(self, token: str) -> RequestRecord | None:
        """Claim one specific APPROVED record; ``None`` if it is not APPROVED.

        Raises UnknownToken.
        """
        with self._lock:
            record = self._get(token)
            if record.state is not RequestState.APPROVED:
                return None
            self._move(record, RequestState.SENT)
            record.sent_at = self._clock()
            self._persist()
            return record.copy()

    def consume(self, token: str) -> bool:
        """APPROVED/SENT -> CONSUMED.

        Never raises: an unknown, already consumed or otherwise
        non-consumable token is a no-op.  Returns True only for the call
        that actually consumed the record.
        """
        with self._lock:
            record = self._records.get(token)
            if record is None:
                logger.info("Consume for unknown token %s ignored", token)
                return False
            if not can_transition(record.state, RequestState.CONSUMED):
                logger.info("Consume for %s in state %s ignored", token, record.state.value)
                return False
            self._move(record, RequestState.CONSUMED)
            record.consumed_at = self._clock()
            self._persist()
            return True

    def mark_error(self, token: str, detail: str) -> Transition:
        """APPROVED/SENT -> ERROR, keeping ``detail``.  Raises UnknownToken."""
        with self._lock:
            record = self._get(token)
            if not can_transition(record.state, RequestState.ERROR):
                logger.warning("Ignoring error report for %s in state %s", token, record.state.value)
                return Transition(record.copy(), False)
            self._move(record, RequestState.ERROR)
            record.error = detail
            record.errored_at = self._clock()
            self._persist()
            return Transition(record.copy(), True)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Serialisable copy of every record, exactly as it would be saved."""
        with self._lock:
            return self._snapshot()
