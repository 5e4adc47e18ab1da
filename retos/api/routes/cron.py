from __future__ import annotations

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from retos.agenda.outbox import sweep_grant_outbox
from retos.core.config import get_settings
from retos.services.internal_auth import is_cron_request_authorized

router = APIRouter(tags=["cron"])
logger = structlog.get_logger(__name__)


@router.get("/cron/grant-retry")
async def grant_retry(request: Request) -> JSONResponse:
    settings = get_settings()
    if not is_cron_request_authorized(request, cron_secret=settings.cron_secret):
        logger.warning("grant_retry_unauthorized")
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"ok": False, "error": "unauthorized"})

    try:
        summary = await sweep_grant_outbox(
            batch_size=settings.agenda_grant_batch_size,
            max_tries=settings.agenda_grant_max_tries,
        )
    except Exception as exc:
        logger.exception("grant_retry_failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"ok": False, "error": type(exc).__name__},
        )

    return JSONResponse(status_code=status.HTTP_200_OK, content={"ok": True, **summary})
