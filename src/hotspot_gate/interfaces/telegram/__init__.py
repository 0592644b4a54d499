"""
Telegram Interface Package
===========================

Admin notification channel built on python-telegram-bot.
"""

from .notifier import TelegramNotifier

__all__ = [
    'TelegramNotifier',
]
