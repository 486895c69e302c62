"""Notification port — abstract interface for surfacing alerts to the user.

Core modules depend on this protocol, never on a specific messaging provider.
Delivery is fire-and-forget: there is no acknowledgment.
"""

from __future__ import annotations

from typing import Protocol


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def notify(self, payload: str) -> None: ...
