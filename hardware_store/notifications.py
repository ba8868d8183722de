"""Web push delivery for order status updates.

Delivery is best-effort: it runs on a background thread, failures are
logged and never reach the request that triggered them. A 404 or 410 from
the push service means the browser dropped the subscription, so it is
removed for good.
"""
from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import requests
import structlog
from cryptography.hazmat.primitives import serialization
from py_vapid import Vapid
from py_vapid.utils import b64urlencode
from pywebpush import WebPushException, webpush

from .config import Settings
from .errors import PersistenceError
from .schemas import Subscription
from .storage import SubscriptionStore

logger = structlog.get_logger(__name__)

GONE_STATUS_CODES = {404, 410}


@dataclass
class VapidKeys:
    public_key: str
    private_key: str

    @classmethod
    def generate(cls) -> "VapidKeys":
        vapid = Vapid()
        vapid.generate_keys()
        public_bytes = vapid.public_key.public_bytes(
            serialization.Encoding.X962,
            serialization.PublicFormat.UncompressedPoint,
        )
        private_bytes = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
        return cls(public_key=b64urlencode(public_bytes), private_key=b64urlencode(private_bytes))

    @classmethod
    def from_settings(cls, settings: Settings) -> "VapidKeys":
        if settings.vapid_public_key and settings.vapid_private_key:
            return cls(public_key=settings.vapid_public_key, private_key=settings.vapid_private_key)
        logger.warning(
            "vapid_keys_missing",
            message="Generating temporary keys; set VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY to keep subscriptions valid across restarts",
        )
        return cls.generate()


def build_status_payload(order_id: str, status: str, note: Optional[str]) -> Dict[str, Any]:
    short_id = order_id[:8]
    if status == "approved":
        title = f"Order #{short_id} Approved! 🎉"
        body = note or "Your order has been approved and will be prepared soon."
    elif status == "denied":
        title = f"Order #{short_id} Denied"
        body = f"Reason: {note}" if note else "Your order has been denied."
    else:
        title = f"Order #{short_id} Updated"
        body = note or f"Your order status is now: {status}"

    return {
        "title": title,
        "body": body,
        "orderId": order_id,
        "url": f"/client/order.html?id={order_id}",
    }


def build_welcome_payload(order_id: str) -> Dict[str, Any]:
    return {
        "title": "Notifications Enabled",
        "body": f"You'll receive updates about order #{order_id}",
        "orderId": order_id,
    }


class NotificationDispatcher:
    def __init__(
        self,
        subscriptions: SubscriptionStore,
        vapid_keys: VapidKeys,
        contact_email: str,
        transport: Callable[..., Any] = webpush,
        background: bool = True,
    ):
        self.subscriptions = subscriptions
        self.vapid_keys = vapid_keys
        self.contact_email = contact_email
        self._transport = transport
        self._background = background

    def register(self, order_id: str, username: Optional[str], subscription: Dict[str, Any]) -> Subscription:
        record = Subscription(
            order_id=order_id,
            username=username or "Anonymous",
            subscription=subscription,
            timestamp=datetime.now(timezone.utc),
        )
        self.subscriptions.put(record)
        logger.info("subscription_registered", order_id=order_id, username=record.username)
        self._submit(order_id, build_welcome_payload(order_id))
        return record

    def send(self, order_id: str, status: str, note: Optional[str] = None) -> None:
        if self.subscriptions.get(order_id) is None:
            logger.debug("no_subscription", order_id=order_id)
            return
        self._submit(order_id, build_status_payload(order_id, status, note))

    def _submit(self, order_id: str, payload: Dict[str, Any]) -> None:
        if not self._background:
            self.deliver(order_id, payload)
            return
        t = threading.Thread(
            target=self.deliver,
            args=(order_id, payload),
            name=f"push:{order_id[:8]}",
            daemon=True,
        )
        t.start()

    def deliver(self, order_id: str, payload: Dict[str, Any]) -> bool:
        record = self.subscriptions.get(order_id)
        if record is None:
            return False

        try:
            self._transport(
                subscription_info=record.subscription,
                data=json.dumps(payload, ensure_ascii=False),
                vapid_private_key=self.vapid_keys.private_key,
                vapid_claims={"sub": f"mailto:{self.contact_email}"},
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            logger.error("notification_failed", order_id=order_id, status_code=status_code, error=str(e))
            if status_code in GONE_STATUS_CODES:
                self._unsubscribe(order_id)
            return False
        except (requests.RequestException, ValueError) as e:
            logger.error("notification_failed", order_id=order_id, error=str(e))
            return False

        logger.info("notification_sent", order_id=order_id)
        return True

    def _unsubscribe(self, order_id: str) -> None:
        try:
            self.subscriptions.delete(order_id)
            logger.info("subscription_removed", order_id=order_id)
        except PersistenceError as e:
            logger.error("subscription_remove_failed", order_id=order_id, error=str(e))
