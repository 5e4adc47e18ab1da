from celery import Celery

from retos.core.config import get_settings
from retos.core.logging import configure_logging
from retos.workers.tasks.grant_outbox_schedule import configure_grant_outbox_schedule

settings = get_settings()
configure_logging(settings.log_level)

celery_app = Celery(
    "retos",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["retos.workers.tasks.grant_outbox"],
)

celery_app.conf.update(
    task_default_queue="q_normal",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="America/Bogota",
    enable_utc=True,
)
configure_grant_outbox_schedule(celery_app)
