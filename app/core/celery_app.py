from celery import Celery
from app.core.config import settings

# Create Celery app
celery_app = Celery(
    "waitlist",
    broker=settings.CELERY_BROKER_URL or settings.REDIS_URL,
    include=["app.tasks.notification_tasks"]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_ignore_result=True,
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
    task_routes={
        "app.tasks.notification_tasks.*": {"queue": "priority"},
    },
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

if __name__ == "__main__":
    celery_app.start()
