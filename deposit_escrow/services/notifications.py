# deposit_escrow/services/notifications.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx

from ..config import settings

log = logging.getLogger("escrow.notifications")

DEPOSIT_CREATED = "deposit.created"
INSPECTION_COMPLETED = "inspection.completed"
DEDUCTION_DISPUTED = "deduction.disputed"
REFUND_PROCESSED = "refund.processed"


class Notifier(Protocol):
    def notify(self, user_id: int, event: str, payload: Optional[dict[str, Any]] = None) -> None: ...


def _envelope(user_id: int, event: str, payload: Optional[dict[str, Any]]) -> dict[str, Any]:
    return {
        "user_id": int(user_id),
        "event": str(event),
        "payload": payload or {},
        "sent_at": datetime.utcnow().isoformat(),
    }


class LogNotifier:
    """Default: notification delivery is an external concern; record the intent."""

    def notify(self, user_id: int, event: str, payload: Optional[dict[str, Any]] = None) -> None:
        log.info("notify %s", event, extra={"user_id": int(user_id), "event": event})


class WebhookNotifier:
    def __init__(self, url: str, timeout: float = 5.0, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.url = url
        self.timeout = float(timeout)
        self.transport = transport

    def notify(self, user_id: int, event: str, payload: Optional[dict[str, Any]] = None) -> None:
        self.post_envelope(_envelope(user_id, event, payload))

    def post_envelope(self, envelope: dict[str, Any]) -> None:
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            r = client.post(self.url, json=envelope)
            r.raise_for_status()


class CeleryNotifier:
    """Hands delivery to the notifications worker queue."""

    def notify(self, user_id: int, event: str, payload: Optional[dict[str, Any]] = None) -> None:
        from ..workers.notification_tasks import deliver_notification

        deliver_notification.delay(_envelope(user_id, event, payload))


def build_notifier(mode: Optional[str] = None) -> Notifier:
    m = (mode or settings.notify_mode or "log").strip().lower()
    if m == "http":
        return WebhookNotifier(str(settings.notify_webhook_url), timeout=settings.notify_timeout)
    if m == "celery":
        return CeleryNotifier()
    return LogNotifier()


_notifier: Optional[Notifier] = None


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier


def notify_safely(
    notifier: Optional[Notifier],
    *,
    user_id: Optional[int],
    event: str,
    payload: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Best-effort fan-out, called only after the money write has committed.

    A delivery failure never undoes or fails the business operation; it is
    logged with the event so it can be replayed from the workflow log.
    """
    if user_id is None:
        return False
    n = notifier or get_notifier()
    try:
        n.notify(int(user_id), event, payload)
        return True
    except Exception:
        log.warning(
            "notification delivery failed",
            extra={"user_id": int(user_id), "event": event},
            exc_info=True,
        )
        return False
