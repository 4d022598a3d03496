from celery import Celery
from fieldtrack.core.config import settings

celery_app = Celery(
    "fieldtrack",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["fieldtrack.tasks.async_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Batches of one employee must not be reordered by prefetching workers
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)
