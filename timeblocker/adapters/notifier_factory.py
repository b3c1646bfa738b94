"""Notifier factory — creates the right NotificationPort based on config."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from timeblocker.config import Settings
    from timeblocker.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


def create_notifier(settings: Settings) -> NotificationPort:
    """Return a Web Push notifier when push is configured, else a logging one."""
    if settings.push_enabled:
        from timeblocker.adapters.webpush_notifier import WebPushNotifier

        return WebPushNotifier(settings.VAPID_PRIVATE_KEY, settings.VAPID_EMAIL)

    from timeblocker.adapters.log_notifier import LogNotifier

    logger.warning("VAPID keys not configured; push notifications will only be logged")
    return LogNotifier()
