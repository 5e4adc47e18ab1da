from __future__ import annotations

import httpx
import structlog

from retos.agenda.errors import (
    AgendaGrantConfigError,
    AgendaGrantRejectedError,
    AgendaGrantTransportError,
)
from retos.core.config import get_settings
from retos.services.grant_tokens import sign_agenda_grant_token

logger = structlog.get_logger(__name__)
MAX_RESPONSE_BODY_CHARS = 500


def agenda_idempotency_key(row_id: int) -> str:
    return f"agenda-grant-{row_id}"


class AgendaGrantClient:
    def __init__(
        self,
        *,
        url: str,
        secret: str,
        issuer: str,
        audience: str,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.url = url
        self.issuer = issuer
        self.audience = audience
        self.timeout_seconds = timeout_seconds
        self._secret = secret

    def build_token(self, email: str) -> str:
        return sign_agenda_grant_token(
            email=email,
            secret=self._secret,
            issuer=self.issuer,
            audience=self.audience,
        )

    async def grant(self, email: str, *, idempotency_key: str) -> None:
        if not self._secret:
            raise AgendaGrantConfigError("missing SHARED_SECRET")
        if not self.url:
            raise AgendaGrantConfigError("missing AGENDA_GRANT_URL")

        headers = {
            "Authorization": f"Bearer {self.build_token(email)}",
            "Idempotency-Key": idempotency_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(self.url, headers=headers)
        except httpx.HTTPError as exc:
            raise AgendaGrantTransportError(
                f"grant request failed: {type(exc).__name__} {exc}".strip()
            ) from exc

        if not 200 <= response.status_code < 300:
            raise AgendaGrantRejectedError(
                response.status_code,
                response.text[:MAX_RESPONSE_BODY_CHARS],
            )
        logger.info(
            "agenda_grant_delivered",
            status_code=response.status_code,
            idempotency_key=idempotency_key,
        )


def build_agenda_grant_client() -> AgendaGrantClient:
    settings = get_settings()
    return AgendaGrantClient(
        url=settings.agenda_grant_url,
        secret=settings.shared_secret,
        issuer=settings.agenda_grant_issuer,
        audience=settings.agenda_grant_audience,
        timeout_seconds=settings.agenda_grant_timeout_seconds,
    )
