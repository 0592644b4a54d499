"""Approval gateway — the boundary between HTTP/Telegram and the token ledger."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from hotspot_gate.core.exceptions import GatewayError, RouterError
from hotspot_gate.core.structured_logger import TraceContext, get_logger
from hotspot_gate.ledger import RequestRecord, RequestState, TokenLedger
from hotspot_gate.observability.metrics import NOTIFICATION_FAILURES
from hotspot_gate.routeros.provisioning import RouterTarget, provision_access

from .decisions import Approve, Decision, Deny

logger = get_logger("ApprovalGateway")

DEFAULT_MAX_CLAIM = 50

Provisioner = Callable[[RequestRecord], list[list[str]]]


class Notifier(Protocol):
    def notify_request(self, record: RequestRecord, demo: bool = False) -> Awaitable[None]: ...


class RouterProvisioner:
    """Direct-provisioning variant: creates a MAC-bound hotspot user per approval."""

    def __init__(self, target: RouterTarget, server_name: str | None = None) -> None:
        self.target = target
        self.server_name = server_name

    def __call__(self, record: RequestRecord) -> list[list[str]]:
        return provision_access(
            self.target,
            username=record.mac,
            password="",
            profile=record.profile,
            mac_address=record.mac,
            comment=f"hotspot-gate {record.token}",
            server_name=self.server_name,
        )


@dataclass
class DecisionOutcome:
    """What a decision did: the record afterwards, whether this decision moved
    it, and the provisioning error if direct provisioning failed."""

    record: RequestRecord
    changed: bool
    error: GatewayError | None = None


class ApprovalGateway:
    """
    Inbound and outbound operations over the token ledger.

    Two provisioning variants share the same ledger:
    - polling: an external poller calls ``claim_approved`` then ``consume``
    - direct: with a ``provisioner``, an approval claims the record and
      provisions it right away, ending in CONSUMED or ERROR
    """

    def __init__(
        self,
        ledger: TokenLedger,
        notifier: Notifier | None = None,
        provisioner: Provisioner | None = None,
        max_claim: int = DEFAULT_MAX_CLAIM,
    ) -> None:
        self.ledger = ledger
        self.notifier = notifier
        self.provisioner = provisioner
        self.max_claim = max_claim
        self._notifications: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Client side
    # ------------------------------------------------------------------

    async def create_request(
        self,
        mac: str,
        ip: str | None = None,
        profile: str | None = None,
        login: str | None = None,
        dst: str | None = None,
        demo: bool = False,
    ) -> str:
        with TraceContext():
            record = self.ledger.create(mac=mac, ip=ip, profile=profile, login=login, dst=dst)
            logger.info("Access request created", token=record.token, mac=mac, ip=ip or "-", demo=demo)
            self._schedule_notification(record, demo)
            return record.token

    def get_status(self, token: str) -> RequestRecord | None:
        return self.ledger.get_status(token)

    def _schedule_notification(self, record: RequestRecord, demo: bool = False) -> None:
        if self.notifier is None:
            return
        task = asyncio.create_task(self._notify(record, demo), name=f"notify-{record.token[:8]}")
        self._notifications.add(task)
        task.add_done_callback(self._notifications.discard)

    async def _notify(self, record: RequestRecord, demo: bool) -> None:
        try:
            await self.notifier.notify_request(record, demo=demo)
        except Exception as e:
            NOTIFICATION_FAILURES.inc()
            logger.error("Admin notification failed", token=record.token, error=str(e))

    async def wait_for_notifications(self) -> None:
        """Wait for in-flight notifications (shutdown and tests)."""
        if self._notifications:
            await asyncio.gather(*list(self._notifications), return_exceptions=True)

    # ------------------------------------------------------------------
    # Administrator side
    # ------------------------------------------------------------------

    async def approve(self, token: str, profile: str) -> DecisionOutcome:
        return await self.handle_decision(Approve(token=token, profile=profile))

    async def deny(self, token: str) -> DecisionOutcome:
        return await self.handle_decision(Deny(token=token))

    async def handle_decision(self, decision: Decision) -> DecisionOutcome:
        with TraceContext():
            if isinstance(decision, Deny):
                transition = self.ledger.deny(decision.token)
                logger.info("Request denied", token=decision.token, changed=transition.changed)
                return DecisionOutcome(transition.record, transition.changed)

            transition = self.ledger.approve(decision.token, decision.profile)
            logger.info(
                "Request approved",
                token=decision.token,
                profile=transition.record.profile,
                changed=transition.changed,
            )
            if not transition.changed or self.provisioner is None:
                return DecisionOutcome(transition.record, transition.changed)
            return await self._provision(decision.token)

    async def _provision(self, token: str) -> DecisionOutcome:
        log = logger.bind(token=token)
        claimed = self.ledger.claim(token)
        if claimed is None:
            # a poller got there first
            return DecisionOutcome(self.ledger.get(token), True)

        try:
            await asyncio.to_thread(self.provisioner, claimed)
        except RouterError as e:
            log.error("Provisioning failed", error=e.to_dict())
            transition = self.ledger.mark_error(token, e.message)
            return DecisionOutcome(transition.record, True, error=e)
        except Exception as e:
            # the record is already SENT; leaving it there would strand it
            log.error("Provisioning crashed", error=repr(e))
            error = GatewayError(str(e) or type(e).__name__, details={'error_type': type(e).__name__})
            transition = self.ledger.mark_error(token, error.message)
            return DecisionOutcome(transition.record, True, error=error)

        self.ledger.consume(token)
        log.info("Provisioned and consumed", profile=claimed.profile)
        return DecisionOutcome(self.ledger.get(token), True)

    # ------------------------------------------------------------------
    # Poller side
    # ------------------------------------------------------------------

    def claim_approved(self, limit: int = 5) -> list[RequestRecord]:
        limit = max(1, min(int(limit), self.max_claim))
        claimed = self.ledger.claim_approved(limit)
        if claimed:
            logger.info("Approved requests claimed", count=len(claimed),
                        tokens=[r.token for r in claimed])
        return claimed

    def consume(self, token: str) -> bool:
        """Acknowledge completion.  Always succeeds."""
        self.ledger.consume(token)
        return True

    def stats(self) -> dict[str, int]:
        return self.ledger.stats()


def describe(record: RequestRecord) -> str:
    """Admin-facing one-screen summary of a record's current state."""
    if record.state is RequestState.APPROVED or record.state is RequestState.SENT:
        head = f"✅ {record.state.value} ({record.profile})"
    elif record.state is RequestState.CONSUMED:
        head = f"✅ PROVISIONED ({record.profile})"
    elif record.state is RequestState.DENIED:
        head = "❌ DENIED"
    elif record.state is RequestState.ERROR:
        head = f"⚠️ ERROR: {record.error}"
    else:
        head = "🔔 PENDING"
    return f"{head}\nMAC: {record.mac}\nIP: {record.ip or '-'}\nToken: {record.token}"
