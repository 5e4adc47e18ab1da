from __future__ import annotations

from retos.agenda import outbox
from retos.core.config import get_settings
from retos.workers.asyncio_runner import run_async_job
from retos.workers.celery_app import celery_app


async def sweep_grant_outbox_async() -> dict[str, int]:
    settings = get_settings()
    return await outbox.sweep_grant_outbox(
        batch_size=settings.agenda_grant_batch_size,
        max_tries=settings.agenda_grant_max_tries,
    )


@celery_app.task(name="retos.workers.tasks.grant_outbox.sweep_grant_outbox")
def sweep_grant_outbox() -> dict[str, int]:
    return run_async_job(sweep_grant_outbox_async(), job_name="grant_outbox_sweep")
