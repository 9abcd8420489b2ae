from celery import Celery
from celery.schedules import crontab
from kombu import Exchange, Queue
from .config import settings


celery_app = Celery(
    "reminders",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND or None,
)

exchange = Exchange(settings.RABBITMQ_EXCHANGE, type="direct", durable=True)

celery_app.conf.update(
    task_acks_late=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    worker_prefetch_multiplier=1,
    task_default_queue=settings.RABBITMQ_QUEUE,
    task_default_exchange=settings.RABBITMQ_EXCHANGE,
    task_default_routing_key=settings.RABBITMQ_ROUTING_KEY,
    include=["app.reminders.tasks"],
    task_queues=(
        Queue(settings.RABBITMQ_QUEUE, exchange=exchange, routing_key=settings.RABBITMQ_ROUTING_KEY, durable=True),
    ),
)

SCAN_EXPIRES_SECONDS = max(min(settings.SCAN_INTERVAL_SECONDS, 60) - 5, 1)

# Celery Beat schedule for periodic scanning
celery_app.conf.beat_schedule = {
    "scan-and-dispatch": {
        "task": "reminders.scan_and_dispatch",
        # fire on every wall-clock minute boundary; a late run must not spill into the next minute
        "schedule": crontab(minute="*"),
        "options": {"expires": SCAN_EXPIRES_SECONDS},
    },
    "cleanup-tokens": {
        "task": "reminders.cleanup_tokens",
        "schedule": settings.SWEEP_INTERVAL_SECONDS,
    },
}
