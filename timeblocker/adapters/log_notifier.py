"""Logging notification adapter — implements NotificationPort.

Used when no VAPID keys are configured: messages are logged, not pushed.
"""

from __future__ import annotations

import logging

from timeblocker.data.models import PushSubscription

logger = logging.getLogger(__name__)


class LogNotifier:
    """NotificationPort that only logs."""

    async def send(self, subscription: PushSubscription, payload: dict) -> None:
        logger.info(
            "Push (not delivered) to %s: %s",
            subscription.endpoint, payload.get("title", ""),
        )
