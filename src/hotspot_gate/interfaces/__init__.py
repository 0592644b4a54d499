"""
Interfaces module - Adapters for outside callers
================================================

- web/:      FastAPI gateway (client requests, poller, Telegram webhook)
- telegram/: Telegram Bot API notifier for the administrator
"""
