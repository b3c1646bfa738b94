"""Notification port — abstract interface for delivering push messages.

Core modules depend on this protocol, never on a specific push provider.
"""

from __future__ import annotations

from typing import Protocol

from timeblocker.data.models import PushSubscription


class NotificationError(Exception):
    """Raised when a push message could not be delivered."""


class SubscriptionGoneError(NotificationError):
    """The push service reports the subscription as expired (HTTP 404/410)."""


class NotificationPort(Protocol):
    """Abstract push interface used by core modules."""

    async def send(self, subscription: PushSubscription, payload: dict) -> None: ...
