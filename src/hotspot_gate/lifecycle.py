"""Lifecycle Management — build the gateway's components from settings."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI

from hotspot_gate.config.settings import Settings
from hotspot_gate.core.structured_logger import get_logger
from hotspot_gate.gateway import ApprovalGateway, RouterProvisioner
from hotspot_gate.interfaces.telegram import TelegramNotifier
from hotspot_gate.interfaces.web import create_app
from hotspot_gate.ledger import TokenLedger
from hotspot_gate.persistence import JsonFileStore
from hotspot_gate.routeros import RouterTarget

logger = get_logger("Lifecycle")


@dataclass
class RuntimeContext:
    """DI container holding all initialized components."""

    settings: Settings
    ledger: TokenLedger
    gateway: ApprovalGateway
    notifier: TelegramNotifier | None
    app: FastAPI


def router_target(settings: Settings) -> RouterTarget:
    router = settings.router
    return RouterTarget(
        host=router.host,
        port=router.port,
        username=router.username,
        password=router.password,
        connect_timeout=router.connect_timeout,
        read_timeout=router.read_timeout,
    )


def build_runtime(settings: Settings) -> RuntimeContext:
    ledger = TokenLedger(
        store=JsonFileStore(settings.ledger.path),
        allowed_profiles=settings.ledger.allowed_profiles,
    )

    notifier = None
    if settings.telegram.bot_token and settings.telegram.admin_chat_id:
        notifier = TelegramNotifier(
            bot_token=settings.telegram.bot_token,
            admin_chat_id=settings.telegram.admin_chat_id,
            public_url=settings.public_url,
            profiles=settings.ledger.allowed_profiles,
        )

    provisioner = None
    if settings.router.enabled:
        provisioner = RouterProvisioner(router_target(settings), settings.router.hotspot_server)

    gateway = ApprovalGateway(
        ledger,
        notifier=notifier,
        provisioner=provisioner,
        max_claim=settings.ledger.max_claim,
    )
    app = create_app(gateway, notifier=notifier, public_url=settings.public_url, version=settings.version)

    logger.info(
        "Runtime built",
        ledger_path=str(settings.ledger.path),
        records=len(ledger),
        telegram=notifier is not None,
        direct_provisioning=provisioner is not None,
    )
    return RuntimeContext(settings, ledger, gateway, notifier, app)
