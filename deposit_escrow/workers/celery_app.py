# deposit_escrow/workers/celery_app.py
from __future__ import annotations

from celery import Celery

from ..config import settings

BROKER = settings.celery_broker_url or "redis://localhost:6379/0"
BACKEND = settings.celery_result_backend or "redis://localhost:6379/1"

celery_app = Celery(
    "deposit_escrow",
    broker=BROKER,
    backend=BACKEND,
    include=["deposit_escrow.workers.notification_tasks"],
)

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    timezone="UTC",
)

# Notification fan-out only; settlement never runs on a worker.
celery_app.conf.task_routes = {
    "deposit_escrow.workers.notification_tasks.*": {"queue": "notifications"},
}
