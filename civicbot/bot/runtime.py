# File: civicbot/bot/runtime.py
# Project: civic-report-bot

import threading
from civicbot.core.config import settings
from civicbot.db.session import SessionLocal
from civicbot.services.telegram import TelegramClient

_lock = threading.Lock()
_bot = None


def get_bot():
    """The process-wide bot, built on first use."""
    global _bot
    with _lock:
        if _bot is None:
            from civicbot.bot.handler import Bot
            _bot = Bot(TelegramClient(settings.telegram_token), SessionLocal)
        return _bot


def set_bot(bot) -> None:
    global _bot
    with _lock:
        _bot = bot
