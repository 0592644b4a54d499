"""
Telegram Notifier - Admin Approval Channel
==========================================

Pushes each new access request to the administrator's chat with one
approve button per allowed profile and a deny button, then reports the
decision back by answering the callback and editing the original message.

Decisions themselves arrive through the HTTP webhook
(``interfaces.web.server``); this class only talks to the Bot API.
"""

import logging
from collections.abc import Sequence

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup

from hotspot_gate.gateway.decisions import Approve, Deny
from hotspot_gate.ledger import RequestRecord

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Sends approval requests and decision feedback to one admin chat."""

    def __init__(
        self,
        bot_token: str | None,
        admin_chat_id: str,
        public_url: str | None = None,
        profiles: Sequence[str] = ("1h", "3h"),
        bot: Bot | None = None,
    ) -> None:
        if bot is None and not bot_token:
            raise ValueError("Telegram bot token is required")
        self.bot = bot or Bot(token=bot_token)
        self.admin_chat_id = str(admin_chat_id)
        self.public_url = public_url.rstrip("/") if public_url else None
        self.profiles = tuple(profiles)

    async def start(self) -> None:
        await self.bot.initialize()
        logger.info("Telegram notifier ready (admin chat %s)", self.admin_chat_id)

    async def stop(self) -> None:
        await self.bot.shutdown()

    def is_admin_chat(self, chat_id) -> bool:
        return chat_id is not None and str(chat_id) == self.admin_chat_id

    # ========================================================================
    # OUTBOUND
    # ========================================================================

    def build_keyboard(self, token: str) -> InlineKeyboardMarkup:
        approve_row = [
            InlineKeyboardButton(
                f"✅ Approve {profile}",
                callback_data=Approve(token=token, profile=profile).to_callback_data(),
            )
            for profile in self.profiles
        ]
        deny_row = [InlineKeyboardButton("❌ Deny", callback_data=Deny(token=token).to_callback_data())]
        return InlineKeyboardMarkup([approve_row, deny_row])

    def format_request(self, record: RequestRecord, demo: bool = False) -> str:
        lines = [
            "🔔 DEMO Hotspot access request" if demo else "🔔 Hotspot access request",
            f"MAC: {record.mac}",
            f"IP: {record.ip or '-'}",
            f"Login: {record.login or '-'}",
            f"DST: {record.dst or '-'}",
        ]
        if record.requested_profile:
            lines.append(f"Requested: {record.requested_profile}")
        lines.append(f"Token: {record.token}")
        if self.public_url:
            approve_url = f"{self.public_url}/approve?token={record.token}&profile={self.profiles[0]}"
            deny_url = f"{self.public_url}/deny?token={record.token}"
            lines += ["", "(Backup links)", f"✅ OK ({self.profiles[0]}): {approve_url}", f"❌ Refuse: {deny_url}"]
        return "\n".join(lines)

    async def notify_request(self, record: RequestRecord, demo: bool = False) -> None:
        await self.bot.send_message(
            chat_id=self.admin_chat_id,
            text=self.format_request(record, demo=demo),
            reply_markup=self.build_keyboard(record.token),
        )
        logger.info("Approval request sent to admin chat for %s", record.token)

    # ========================================================================
    # DECISION FEEDBACK
    # ========================================================================

    async def answer(self, callback_query_id: str, text: str, alert: bool = False) -> None:
        await self.bot.answer_callback_query(callback_query_id, text=text, show_alert=alert)

    async def edit_decision(self, chat_id, message_id: int, text: str) -> None:
        await self.bot.edit_message_text(text=text, chat_id=chat_id, message_id=message_id)

    async def set_webhook(self, url: str) -> bool:
        result = await self.bot.set_webhook(url=url, allowed_updates=["callback_query"])
        logger.info("Telegram webhook set to %s", url)
        return result
