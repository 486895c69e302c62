"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures like an empty store and a fixed clock.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")

from datetime import datetime

import pytest


@pytest.fixture
def store():
    """Return an empty in-memory ReminderStore."""
    from src.data.store import ReminderStore
    return ReminderStore()


@pytest.fixture
def now():
    """A fixed 'current time': Friday 2026-10-16 10:00."""
    return datetime(2026, 10, 16, 10, 0)
