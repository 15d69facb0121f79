# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import (
    CELERY_BROKER_URL,
    CELERY_RESULT_BACKEND,
    CELERY_TASK_ALWAYS_EAGER,
)

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# taski importowane explicite, zeby worker je zarejestrowal
celery_app.conf.imports = (
    "storefront.tasks.maintenance",
    "storefront.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "purge-expired-tokens-every-hour": {
        "task": "storefront.tasks.maintenance.purge_expired_tokens_task",
        "schedule": 60.0 * 60,
    },
    "retry-unmatched-payments-every-10-minutes": {
        "task": "storefront.tasks.maintenance.retry_unmatched_payments_task",
        "schedule": 60.0 * 10,
    },
}

celery_app.conf.timezone = "UTC"
# lokalnie i w testach taski wykonuja sie synchronicznie
celery_app.conf.task_always_eager = CELERY_TASK_ALWAYS_EAGER
