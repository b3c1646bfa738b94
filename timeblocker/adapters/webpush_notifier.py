"""Web Push notification adapter — implements NotificationPort.

Wraps pywebpush to satisfy the NotificationPort protocol. pywebpush is
blocking, so each send runs in a worker thread. Transport errors and
malformed subscription keys surface as NotificationError.
"""

from __future__ import annotations

import asyncio
import json
import logging

import requests
from pywebpush import WebPushException, webpush

from timeblocker.data.models import PushSubscription
from timeblocker.ports.notification_port import NotificationError, SubscriptionGoneError

logger = logging.getLogger(__name__)

_GONE_STATUSES = (404, 410)


class WebPushNotifier:
    """VAPID-signed Web Push implementation of NotificationPort."""

    def __init__(self, vapid_private_key: str, vapid_email: str, ttl: int = 3600) -> None:
        self._private_key = vapid_private_key
        self._claims = {"sub": vapid_email}
        self._ttl = ttl

    async def send(self, subscription: PushSubscription, payload: dict) -> None:
        await asyncio.to_thread(self._send_sync, subscription, json.dumps(payload))

    def _send_sync(self, subscription: PushSubscription, data: str) -> None:
        try:
            webpush(
                subscription_info=subscription.to_dict(),
                data=data,
                vapid_private_key=self._private_key,
                vapid_claims=dict(self._claims),
                ttl=self._ttl,
            )
        except WebPushException as exc:
            status = exc.response.status_code if exc.response is not None else None
            if status in _GONE_STATUSES:
                raise SubscriptionGoneError(subscription.endpoint) from exc
            raise NotificationError(f"Push to {subscription.endpoint} failed: {exc}") from exc
        except (requests.RequestException, ValueError) as exc:
            raise NotificationError(f"Push to {subscription.endpoint} failed: {exc}") from exc
