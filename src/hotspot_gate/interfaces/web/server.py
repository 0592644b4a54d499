"""hotspot-gate web interface — client requests, poller endpoints, Telegram webhook."""

from __future__ import annotations

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict
from starlette.responses import Response

from hotspot_gate.core.exceptions import (
    ConnectTimeout,
    ErrorCode,
    GatewayError,
    InvalidDecision,
    InvalidProfile,
    ReadTimeout,
    RouterError,
    UnknownToken,
)
from hotspot_gate.gateway import ApprovalGateway, Approve, describe, parse_decision
from hotspot_gate.observability.metrics import render_latest, set_ledger_stats

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class AccessRequestBody(BaseModel):
    mac: str | None = None
    ip: str | None = None
    profile: str | None = None
    login: str | None = None
    dst: str | None = None


class ConsumeBody(BaseModel):
    token: str


class TelegramChat(BaseModel):
    id: int | str


class TelegramMessage(BaseModel):
    message_id: int
    chat: TelegramChat


class TelegramCallbackQuery(BaseModel):
    id: str
    data: str | None = None
    message: TelegramMessage | None = None


class TelegramUpdate(BaseModel):
    update_id: int | None = None
    callback_query: TelegramCallbackQuery | None = None

    model_config = ConfigDict(extra="allow")


def _record_json(record) -> dict[str, Any]:
    return record.to_dict()


def _error_status(exc: GatewayError) -> int:
    if isinstance(exc, UnknownToken):
        return 404
    if isinstance(exc, (ConnectTimeout, ReadTimeout)):
        return 504
    if isinstance(exc, RouterError):
        return 502
    if exc.error_code is ErrorCode.INTERNAL_ERROR:
        return 500
    return 400


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class WebInterface:
    def __init__(self, gateway: ApprovalGateway, notifier=None, public_url: str | None = None, version: str = "0.0.0-dev"):
        self.gateway = gateway
        self.notifier = notifier
        self.public_url = public_url.rstrip("/") if public_url else None
        self.version = version
        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            if self.notifier is not None:
                try:
                    await self.notifier.start()
                except Exception as e:
                    logger.warning("Telegram notifier failed to start: %s", e)
            try:
                yield
            finally:
                await self.gateway.wait_for_notifications()
                if self.notifier is not None:
                    try:
                        await self.notifier.stop()
                    except Exception as e:
                        logger.warning("Telegram notifier failed to stop cleanly: %s", e)

        app = FastAPI(title="hotspot-gate", version=self.version, lifespan=lifespan)
        self._register_exception_handlers(app)
        self._register_client_routes(app)
        self._register_admin_routes(app)
        self._register_poller_routes(app)
        self._register_telegram_routes(app)
        self._register_utility_routes(app)
        return app

    def _register_exception_handlers(self, app: FastAPI) -> None:
        @app.exception_handler(GatewayError)
        async def gateway_error_handler(request: Request, exc: GatewayError):
            return JSONResponse(
                status_code=_error_status(exc),
                content={"error": exc.message, "code": int(exc.error_code), "retryable": exc.retryable},
            )

    # ------------------------------------------------------------------
    # Client
    # ------------------------------------------------------------------

    def _register_client_routes(self, app: FastAPI) -> None:
        @app.post("/request")
        async def create_request(payload: AccessRequestBody):
            if not payload.mac:
                return JSONResponse(status_code=400, content={"error": "mac required"})
            token = await self.gateway.create_request(
                mac=payload.mac,
                ip=payload.ip,
                profile=payload.profile,
                login=payload.login,
                dst=payload.dst,
            )
            return {"token": token}

        @app.get("/status")
        async def status(token: str = Query("")):
            record = self.gateway.get_status(token)
            if record is None:
                return {"state": "UNKNOWN"}
            return _record_json(record)

    # ------------------------------------------------------------------
    # Backup approve/deny links (the Telegram buttons are the primary path)
    # ------------------------------------------------------------------

    def _register_admin_routes(self, app: FastAPI) -> None:
        @app.get("/approve", response_class=PlainTextResponse)
        async def approve(token: str = Query(""), profile: str | None = Query(None)):
            try:
                chosen = self.gateway.ledger.normalize_profile(profile)
            except InvalidProfile:
                allowed = " / ".join(self.gateway.ledger.allowed_profiles)
                return PlainTextResponse(f"Profile not allowed ({allowed} only)", status_code=400)
            try:
                outcome = await self.gateway.approve(token, chosen)
            except UnknownToken:
                return PlainTextResponse("Unknown token", status_code=404)
            if outcome.error is not None:
                return PlainTextResponse(
                    f"⚠️ Approved ({chosen}) but provisioning failed: {outcome.error.message}",
                    status_code=_error_status(outcome.error),
                )
            if not outcome.changed:
                return PlainTextResponse(f"Already {outcome.record.state.value}")
            return PlainTextResponse(f"✅ Approved ({chosen}).")

        @app.get("/deny", response_class=PlainTextResponse)
        async def deny(token: str = Query("")):
            try:
                outcome = await self.gateway.deny(token)
            except UnknownToken:
                return PlainTextResponse("Unknown token", status_code=404)
            if not outcome.changed:
                return PlainTextResponse(f"Already {outcome.record.state.value}")
            return PlainTextResponse("❌ Denied")

    # ------------------------------------------------------------------
    # Poller (router-side consumer)
    # ------------------------------------------------------------------

    def _register_poller_routes(self, app: FastAPI) -> None:
        @app.get("/approved")
        async def approved(limit: int = Query(5)):
            records = self.gateway.claim_approved(limit)
            return [_record_json(r) for r in records]

        @app.post("/consume")
        async def consume(payload: ConsumeBody):
            self.gateway.consume(payload.token)
            return {"ok": True}

        @app.get("/consume")
        async def consume_link(token: str = Query("")):
            self.gateway.consume(token)
            return {"ok": True}

    # ------------------------------------------------------------------
    # Telegram
    # ------------------------------------------------------------------

    def _register_telegram_routes(self, app: FastAPI) -> None:
        @app.post("/tg/webhook")
        async def telegram_webhook(update: TelegramUpdate, background: BackgroundTasks):
            # Telegram only needs a fast 200; the decision runs after the response
            if update.callback_query is not None and self.notifier is not None:
                background.add_task(self._handle_callback, update.callback_query)
            return Response(status_code=200)

        @app.get("/setup-webhook", response_class=PlainTextResponse)
        async def setup_webhook():
            if self.notifier is None or not self.public_url:
                return PlainTextResponse("❌ Telegram or public URL not configured", status_code=500)
            webhook_url = f"{self.public_url}/tg/webhook"
            try:
                await self.notifier.set_webhook(webhook_url)
            except Exception as e:
                logger.error("setup-webhook error: %s", e, exc_info=True)
                return PlainTextResponse("❌ setWebhook error", status_code=500)
            return PlainTextResponse(f"✅ Webhook set: {webhook_url}")

        @app.get("/demo-request", response_class=PlainTextResponse)
        async def demo_request(mac: str = Query("AA:BB:CC:DD:EE:FF"), ip: str = Query("11.11.11.50")):
            token = await self.gateway.create_request(mac=mac, ip=ip, demo=True)
            return PlainTextResponse(f"DEMO sent ✅ Token={token}")

    async def _handle_callback(self, query: TelegramCallbackQuery) -> None:
        chat_id = query.message.chat.id if query.message else None
        try:
            if not self.notifier.is_admin_chat(chat_id):
                await self.notifier.answer(query.id, "❌ You are not the admin", alert=True)
                return

            try:
                decision = parse_decision(query.data)
                outcome = await self.gateway.handle_decision(decision)
            except InvalidDecision:
                await self.notifier.answer(query.id, "❌ Unknown action", alert=True)
                return
            except UnknownToken:
                await self.notifier.answer(query.id, "❌ Unknown token", alert=True)
                return
            except InvalidProfile:
                await self.notifier.answer(query.id, "❌ Profile not allowed", alert=True)
                return

            record = outcome.record
            if not outcome.changed:
                text = f"ℹ️ Already {record.state.value}"
            elif outcome.error is not None:
                text = f"⚠️ Provisioning failed: {outcome.error.message}"
            elif isinstance(decision, Approve):
                text = f"✅ Approved ({record.profile})"
            else:
                text = "❌ Denied"
            await self.notifier.answer(query.id, text)

            if query.message is not None:
                await self.notifier.edit_decision(chat_id, query.message.message_id, describe(record))
        except Exception as e:
            # the 200 has already gone out; nothing left but to log
            logger.error("tg/webhook error: %s", e, exc_info=True)

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    def _register_utility_routes(self, app: FastAPI) -> None:
        @app.get("/", response_class=PlainTextResponse)
        async def root():
            return PlainTextResponse("Server OK ✅")

        @app.get("/health")
        async def health():
            stats = self.gateway.stats()
            return {
                "status": "ok",
                "version": self.version,
                "build": {
                    "python_version": sys.version.split()[0],
                    "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
                },
                "direct_provisioning": self.gateway.provisioner is not None,
                "ledger": stats,
            }

        @app.get("/metrics")
        async def metrics():
            set_ledger_stats(self.gateway.stats())
            payload, content_type = render_latest()
            return Response(content=payload, media_type=content_type)


def create_app(gateway: ApprovalGateway, notifier=None, public_url: str | None = None, version: str = "0.0.0-dev") -> FastAPI:
    return WebInterface(gateway, notifier=notifier, public_url=public_url, version=version).app
