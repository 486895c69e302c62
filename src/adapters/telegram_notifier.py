"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance and broadcasts every alert to the
configured chats.
"""

from __future__ import annotations

import logging
from typing import Iterable

from telegram import Bot
from telegram.error import TelegramError

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot, chat_ids: Iterable[int]) -> None:
        self._bot = bot
        self._chat_ids = list(chat_ids)

    async def notify(self, payload: str) -> None:
        for chat_id in self._chat_ids:
            try:
                await self._bot.send_message(chat_id=chat_id, text=payload)
            except TelegramError as exc:
                logger.error("Failed to deliver alert to %d: %s", chat_id, exc)
