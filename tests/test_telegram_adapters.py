"""Tests for the Telegram adapters — alert delivery and alarm audio."""

import base64

import pytest
from unittest.mock import AsyncMock, MagicMock

from telegram.error import NetworkError

from src.adapters.telegram_audio import PRESET_URLS, TelegramAudioPlayer, resolve_sound
from src.adapters.telegram_notifier import TelegramNotifier


def _make_bot():
    bot = MagicMock()
    bot.send_message = AsyncMock()
    bot.send_audio = AsyncMock()
    return bot


# ---------------------------------------------------------------------------
# resolve_sound
# ---------------------------------------------------------------------------


class TestResolveSound:
    @pytest.mark.parametrize("ref", ["chime", "beep", "bell"])
    def test_presets(self, ref):
        assert resolve_sound(ref) == PRESET_URLS[ref]

    @pytest.mark.parametrize("ref", ["none", ""])
    def test_silent(self, ref):
        assert resolve_sound(ref) is None

    def test_url_passes_through(self):
        url = "https://example.org/alarm.mp3"
        assert resolve_sound(url) == url

    def test_data_uri_is_decoded(self):
        payload = b"OggS fake audio"
        ref = "data:audio/ogg;base64," + base64.b64encode(payload).decode()
        assert resolve_sound(ref) == payload

    def test_bad_data_uri_falls_back_to_beep(self):
        assert resolve_sound("data:audio/ogg;base64,@@not-base64@@") == PRESET_URLS["beep"]
        assert resolve_sound("data:audio/ogg,plain") == PRESET_URLS["beep"]

    def test_unknown_reference_falls_back_to_beep(self):
        assert resolve_sound("klaxon") == PRESET_URLS["beep"]


# ---------------------------------------------------------------------------
# TelegramAudioPlayer
# ---------------------------------------------------------------------------


class TestTelegramAudioPlayer:
    @pytest.mark.asyncio
    async def test_sends_preset_to_every_chat(self):
        bot = _make_bot()
        player = TelegramAudioPlayer(bot, [1, 2])

        await player.play("bell")

        assert bot.send_audio.await_count == 2
        bot.send_audio.assert_any_await(chat_id=1, audio=PRESET_URLS["bell"])
        bot.send_audio.assert_any_await(chat_id=2, audio=PRESET_URLS["bell"])

    @pytest.mark.asyncio
    async def test_uploads_custom_recording(self):
        bot = _make_bot()
        ref = "data:audio/ogg;base64," + base64.b64encode(b"clip").decode()

        await TelegramAudioPlayer(bot, [1]).play(ref)

        bot.send_audio.assert_awaited_once_with(chat_id=1, audio=b"clip", filename="alarm.ogg")

    @pytest.mark.asyncio
    async def test_silent_sends_nothing(self):
        bot = _make_bot()
        await TelegramAudioPlayer(bot, [1]).play("none")
        bot.send_audio.assert_not_called()

    @pytest.mark.asyncio
    async def test_delivery_error_is_swallowed(self):
        bot = _make_bot()
        bot.send_audio.side_effect = [NetworkError("blocked"), None]

        await TelegramAudioPlayer(bot, [1, 2]).play("chime")

        assert bot.send_audio.await_count == 2


# ---------------------------------------------------------------------------
# TelegramNotifier
# ---------------------------------------------------------------------------


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_broadcasts_payload(self):
        bot = _make_bot()

        await TelegramNotifier(bot, [1, 2]).notify("🔔 Reminder: Grade papers")

        bot.send_message.assert_any_await(chat_id=1, text="🔔 Reminder: Grade papers")
        bot.send_message.assert_any_await(chat_id=2, text="🔔 Reminder: Grade papers")

    @pytest.mark.asyncio
    async def test_failed_chat_does_not_stop_others(self):
        bot = _make_bot()
        bot.send_message.side_effect = [NetworkError("down"), None]

        await TelegramNotifier(bot, [1, 2]).notify("hi")

        assert bot.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_no_chats_configured(self):
        bot = _make_bot()
        await TelegramNotifier(bot, []).notify("hi")
        bot.send_message.assert_not_called()
