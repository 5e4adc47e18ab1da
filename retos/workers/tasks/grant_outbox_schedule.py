from __future__ import annotations

GRANT_OUTBOX_SWEEP_INTERVAL_SECONDS = 300.0


def configure_grant_outbox_schedule(celery_app) -> None:
    celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
    celery_app.conf.beat_schedule.update(
        {
            "sweep-grant-outbox-every-5-minutes": {
                "task": "retos.workers.tasks.grant_outbox.sweep_grant_outbox",
                "schedule": GRANT_OUTBOX_SWEEP_INTERVAL_SECONDS,
                "options": {"queue": "q_normal"},
            },
        }
    )
