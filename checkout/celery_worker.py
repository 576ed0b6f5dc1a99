# checkout/celery_worker.py
from celery import Celery

from checkout.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND

celery_app = Celery(
    "checkout",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

#import task modules explicitly so the worker registers them
celery_app.conf.imports = (
    "checkout.tasks.expire",
    "checkout.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "expire-attempts-every-minute": {
        "task": "checkout.tasks.expire.expire_attempts_task",
        "schedule": 60.0,
    },
}

celery_app.conf.timezone = "UTC"
