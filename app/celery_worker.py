# app/celery_worker.py
from celery import Celery

from app.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    SETTLEMENT_RETRY_INTERVAL_SECONDS,
)

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# WAŻNE: Explicite importuj taski, żeby Celery je zarejestrował
celery_app.conf.imports = (
    "app.tasks.reconcile",
    "app.services.notification_service",
)

# Konfiguracja beat schedule
celery_app.conf.beat_schedule = {
    "retry-pending-settlements": {
        "task": "app.tasks.reconcile.retry_pending_settlements_task",
        "schedule": SETTLEMENT_RETRY_INTERVAL_SECONDS,
    },
}

celery_app.conf.timezone = "UTC"
