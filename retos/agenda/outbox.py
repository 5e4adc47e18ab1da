from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from retos.agenda.client import AgendaGrantClient, agenda_idempotency_key, build_agenda_grant_client
from retos.agenda.errors import AgendaGrantError
from retos.core.config import get_settings
from retos.core.emails import normalize_email
from retos.db.repo.grant_outbox_repo import GrantOutboxRepo
from retos.db.session import SessionLocal
from retos.services.grant_alerts import send_grant_failure_alert

logger = structlog.get_logger(__name__)

OUTCOME_OK = "ok"
OUTCOME_RETRY = "retry"
OUTCOME_ERROR = "error"
OUTCOME_SKIPPED = "skipped"
OUTCOME_MISSING = "missing"

STAGE_IMMEDIATE = "immediate"
STAGE_SWEEP = "sweep"
STAGE_EXHAUSTED = "exhausted"
STAGE_MISSING_EMAIL = "missing_email"

MISSING_EMAIL_ERROR = "missing email"
MAX_LAST_ERROR_CHARS = 500


def _bounded_error(message: str) -> str:
    return (message or "unknown error")[:MAX_LAST_ERROR_CHARS]


async def stage_agenda_grant(session: AsyncSession, *, email: str | None) -> int:
    """Insert a pending outbox row inside the caller's transaction."""
    row = await GrantOutboxRepo.create(session, email=normalize_email(email))
    logger.info("agenda_grant_staged", row_id=row.id)
    return int(row.id)


async def _alert(*, row_id: int, email: str | None, tries: int, stage: str, error: str | None) -> None:
    try:
        await send_grant_failure_alert(row_id=row_id, email=email, tries=tries, stage=stage, error=error)
    except Exception:
        logger.exception("agenda_grant_alert_failed", row_id=row_id, stage=stage)


async def attempt_agenda_grant(
    row_id: int,
    email: str | None,
    *,
    stage: str,
    max_tries: int,
    client: AgendaGrantClient | None = None,
) -> str:
    attempted_at = datetime.now(timezone.utc)
    normalized = normalize_email(email)

    if normalized is None:
        async with SessionLocal.begin() as session:
            transition = await GrantOutboxRepo.mark_error(
                session,
                row_id=row_id,
                error=MISSING_EMAIL_ERROR,
                attempted_at=attempted_at,
            )
        if transition is None:
            logger.info("agenda_grant_attempt_skipped", row_id=row_id, stage=stage)
            return OUTCOME_SKIPPED
        _, tries = transition
        logger.error("agenda_grant_missing_email", row_id=row_id, tries=tries)
        await _alert(row_id=row_id, email=None, tries=tries, stage=STAGE_MISSING_EMAIL, error=MISSING_EMAIL_ERROR)
        return OUTCOME_ERROR

    grant_client = client or build_agenda_grant_client()
    error: str | None = None
    try:
        await grant_client.grant(normalized, idempotency_key=agenda_idempotency_key(row_id))
    except AgendaGrantError as exc:
        error = _bounded_error(str(exc))

    async with SessionLocal.begin() as session:
        transition = await GrantOutboxRepo.record_attempt(
            session,
            row_id=row_id,
            succeeded=error is None,
            error=error,
            max_tries=max_tries,
            attempted_at=attempted_at,
        )

    if transition is None:
        # Another attempt already moved the row out of pending.
        logger.info("agenda_grant_attempt_skipped", row_id=row_id, stage=stage)
        return OUTCOME_SKIPPED

    status, tries = transition
    if status == "ok":
        logger.info("agenda_grant_attempt_succeeded", row_id=row_id, stage=stage, tries=tries)
        return OUTCOME_OK

    logger.warning(
        "agenda_grant_attempt_failed",
        row_id=row_id,
        stage=stage,
        tries=tries,
        status=status,
        error=error,
    )
    if status == "error":
        await _alert(row_id=row_id, email=normalized, tries=tries, stage=STAGE_EXHAUSTED, error=error)
        return OUTCOME_ERROR
    if stage == STAGE_IMMEDIATE:
        await _alert(row_id=row_id, email=normalized, tries=tries, stage=STAGE_IMMEDIATE, error=error)
    return OUTCOME_RETRY


async def deliver_agenda_grant(
    row_id: int,
    *,
    stage: str = STAGE_IMMEDIATE,
    client: AgendaGrantClient | None = None,
) -> str:
    """Attempt a committed outbox row right away; failures leave it for the sweeper."""
    async with SessionLocal.begin() as session:
        row = await GrantOutboxRepo.get_by_id(session, row_id)
        if row is None:
            logger.warning("agenda_grant_row_missing", row_id=row_id)
            return OUTCOME_MISSING
        if row.status != "pending":
            return OUTCOME_SKIPPED
        email = row.email

    return await attempt_agenda_grant(
        row_id,
        email,
        stage=stage,
        max_tries=get_settings().agenda_grant_max_tries,
        client=client,
    )


async def enqueue_agenda_grant(email: str | None, *, client: AgendaGrantClient | None = None) -> tuple[int, str]:
    async with SessionLocal.begin() as session:
        row_id = await stage_agenda_grant(session, email=email)
    outcome = await deliver_agenda_grant(row_id, client=client)
    return row_id, outcome


async def sweep_grant_outbox(
    *,
    batch_size: int,
    max_tries: int,
    client: AgendaGrantClient | None = None,
) -> dict[str, int]:
    async with SessionLocal.begin() as session:
        due_rows = await GrantOutboxRepo.list_due(session, max_tries=max_tries, limit=batch_size)
        candidates = [(int(row.id), row.email) for row in due_rows]

    grant_client = client or build_agenda_grant_client()
    summary = {"processed": 0, "succeeded": 0, "failed": 0}
    skipped = 0
    for row_id, email in candidates:
        try:
            outcome = await attempt_agenda_grant(
                row_id,
                email,
                stage=STAGE_SWEEP,
                max_tries=max_tries,
                client=grant_client,
            )
        except Exception:
            summary["processed"] += 1
            summary["failed"] += 1
            logger.exception("grant_outbox_row_error", row_id=row_id)
            continue

        # Rows another attempt finished after the snapshot stay out of the summary.
        if outcome == OUTCOME_SKIPPED:
            skipped += 1
            continue
        summary["processed"] += 1
        if outcome == OUTCOME_OK:
            summary["succeeded"] += 1
        elif outcome in (OUTCOME_RETRY, OUTCOME_ERROR):
            summary["failed"] += 1

    logger.info("grant_outbox_sweep_finished", skipped=skipped, **summary)
    return summary
