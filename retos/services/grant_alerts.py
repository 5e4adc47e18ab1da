from __future__ import annotations

from datetime import datetime, timezone

import structlog

from retos.services.alerts import send_ops_alert
from retos.services.notifications import get_default_support_email, notify

logger = structlog.get_logger(__name__)
GRANT_FAILURE_EVENT = "agenda_grant_failed"


async def send_grant_failure_alert(
    *,
    row_id: int,
    email: str | None,
    tries: int,
    stage: str,
    error: str | None,
) -> bool:
    """Email the ops address and post the ops-alert event for a failed Agenda grant.

    Never raises and never touches outbox state.
    """
    payload: dict[str, object] = {
        "row_id": row_id,
        "email": email or "",
        "target_email": email or "",
        "tries": tries,
        "stage": stage,
        "error": error or "",
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    delivered = False
    try:
        alert_to = get_default_support_email()
        if alert_to:
            result = await notify("grant_failure_alert", alert_to, payload)
            delivered = result.ok
        else:
            logger.warning("grant_failure_alert_email_skipped", row_id=row_id, stage=stage)

        if await send_ops_alert(event=GRANT_FAILURE_EVENT, payload=payload):
            delivered = True
    except Exception:
        logger.exception("grant_failure_alert_failed", row_id=row_id, stage=stage)
        return False

    logger.warning(
        "grant_failure_alert_sent",
        row_id=row_id,
        stage=stage,
        tries=tries,
        delivered=delivered,
    )
    return delivered
