# deposit_escrow/workers/notification_tasks.py
from __future__ import annotations

import logging
import random
from typing import Any

import httpx

from ..config import settings
from ..services.notifications import WebhookNotifier
from .celery_app import celery_app

log = logging.getLogger("escrow.notifications.worker")


def _backoff_seconds(retries: int) -> int:
    """
    Exponential backoff with jitter.
    retries is the current retry count (0 for first retry attempt).
    """
    base = int(settings.notify_retry_base_seconds or 5)
    cap = int(settings.notify_retry_max_seconds or 300)

    delay = min(cap, base * (2 ** max(0, int(retries))))

    # jitter: +/- 20%
    jitter = int(delay * 0.2)
    if jitter > 0:
        delay = max(1, min(cap, delay + random.randint(-jitter, jitter)))
    return delay


@celery_app.task(
    bind=True,
    max_retries=settings.notify_max_retries,
    default_retry_delay=5,
    name="deposit_escrow.workers.notification_tasks.deliver_notification",
)
def deliver_notification(self, envelope: dict[str, Any]) -> dict:
    """
    Deliver one notification envelope {user_id, event, payload, sent_at}.

    Posts to the webhook when one is configured, otherwise only logs the
    intent. Transport failures retry with backoff; after the last retry the
    envelope is logged as dropped. The escrow write it describes is already
    committed either way.
    """
    user_id = envelope.get("user_id")
    event = envelope.get("event")

    if not settings.notify_webhook_url:
        log.info("notify %s", event, extra={"user_id": user_id, "event": event})
        return {"ok": True, "delivered": False, "event": event}

    try:
        WebhookNotifier(settings.notify_webhook_url, timeout=settings.notify_timeout).post_envelope(envelope)
    except httpx.HTTPError as e:
        retries = int(self.request.retries or 0)
        if retries >= int(self.max_retries or 0):
            log.error(
                "notification dropped after %s retries",
                retries,
                extra={"user_id": user_id, "event": event},
                exc_info=True,
            )
            return {"ok": False, "delivered": False, "event": event, "reason": "max_retries"}
        raise self.retry(exc=e, countdown=_backoff_seconds(retries))

    return {"ok": True, "delivered": True, "event": event}
