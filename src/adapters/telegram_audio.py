"""Telegram audio adapter — implements AudioPort.

A Telegram chat has no speaker, so "playing" an alarm means sending the
sound clip to the chat where the client plays it.

Sound references:
- "chime" / "beep" / "bell" -> bundled preset URLs
- "none" -> silent
- "http(s)://..." -> sent as-is
- "data:audio/...;base64,..." -> custom recording, decoded and uploaded
Anything else falls back to the "beep" preset.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Iterable

from telegram import Bot
from telegram.error import TelegramError

from src.data.models import SILENT_SOUND

logger = logging.getLogger(__name__)

PRESET_URLS = {
    "chime": "https://actions.google.com/sounds/v1/alarms/bugle_tune.ogg",
    "beep": "https://actions.google.com/sounds/v1/alarms/beep_short.ogg",
    "bell": "https://actions.google.com/sounds/v1/alarms/medium_bell_ringing_near.ogg",
}
_FALLBACK_PRESET = "beep"


def _decode_data_uri(sound_ref: str) -> bytes:
    """Return the payload of a base64 data URI.

    Raises ValueError on a malformed URI.
    """
    header, sep, data = sound_ref.partition(",")
    if not sep or ";base64" not in header:
        raise ValueError("Only base64 data URIs are supported")
    try:
        return base64.b64decode(data, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Bad base64 payload: {exc}") from exc


def resolve_sound(sound_ref: str) -> str | bytes | None:
    """Map a sound reference to something Bot.send_audio accepts.

    Returns None for the silent reference.
    """
    if not sound_ref or sound_ref == SILENT_SOUND:
        return None
    if sound_ref in PRESET_URLS:
        return PRESET_URLS[sound_ref]
    if sound_ref.startswith(("http://", "https://")):
        return sound_ref
    if sound_ref.startswith("data:"):
        try:
            return _decode_data_uri(sound_ref)
        except ValueError as exc:
            logger.warning("Custom sound unreadable (%s), using %s", exc, _FALLBACK_PRESET)
            return PRESET_URLS[_FALLBACK_PRESET]

    logger.warning("Unknown sound reference %r, using %s", sound_ref[:40], _FALLBACK_PRESET)
    return PRESET_URLS[_FALLBACK_PRESET]


class TelegramAudioPlayer:
    """Telegram implementation of AudioPort. Never raises."""

    def __init__(self, bot: Bot, chat_ids: Iterable[int]) -> None:
        self._bot = bot
        self._chat_ids = list(chat_ids)

    async def play(self, sound_ref: str) -> None:
        audio = resolve_sound(sound_ref)
        if audio is None:
            return

        for chat_id in self._chat_ids:
            try:
                if isinstance(audio, bytes):
                    await self._bot.send_audio(
                        chat_id=chat_id, audio=audio, filename="alarm.ogg",
                    )
                else:
                    await self._bot.send_audio(chat_id=chat_id, audio=audio)
            except TelegramError as exc:
                logger.warning("Audio playback blocked for %d: %s", chat_id, exc)
