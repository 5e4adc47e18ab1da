from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx
import structlog

from retos.core.config import get_settings

logger = structlog.get_logger(__name__)
SENDGRID_MAIL_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
SENDGRID_FROM_NAME = "Ministerio Maná"
SENDGRID_TIMEOUT_SECONDS = 10.0
ERROR_BODY_LIMIT = 500


@dataclass(frozen=True, slots=True)
class NotificationResult:
    ok: bool
    status: int | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class NotificationKind:
    subject: str
    preheader: str
    tag: str


NOTIFICATION_KINDS: dict[str, NotificationKind] = {
    "welcome_retos": NotificationKind(
        subject="¡Bienvenido a 21 Retos!",
        preheader="Tu acceso ya está activo. Empieza hoy mismo con tu primer reto.",
        tag="Bienvenida",
    ),
    "agenda_activation": NotificationKind(
        subject="Tu Agenda Devocional ya está lista",
        preheader="Accede a la Agenda Devocional con tus credenciales de siempre.",
        tag="Agenda",
    ),
    "payment_receipt": NotificationKind(
        subject="Recibo de tu donación",
        preheader="Gracias por sembrar en Devocional Maná. Aquí los detalles de tu aporte.",
        tag="Donación",
    ),
    "external_grant": NotificationKind(
        subject="Tienes acceso a 21 Retos",
        preheader="Habilitamos tu cuenta para que avances en los 21 días de crecimiento.",
        tag="Acceso",
    ),
    "license_revoked": NotificationKind(
        subject="Actualizamos tus accesos",
        preheader="Un miembro del equipo ajustó uno de tus permisos.",
        tag="Acceso",
    ),
    "agenda_reactivated": NotificationKind(
        subject="Restablecimos tu acceso a la Agenda",
        preheader="Ya puedes ingresar nuevamente y llevar tu devocional día a día.",
        tag="Agenda",
    ),
    "grant_failure_alert": NotificationKind(
        subject="[Alerta] Falla otorgando Agenda",
        preheader="Revisemos el outbox de grant. Un usuario espera su activación.",
        tag="ALERTA",
    ),
}


class Notifier(Protocol):
    async def send(self, kind: str, to: str, data: dict[str, Any] | None = None) -> NotificationResult: ...


def get_default_support_email() -> str:
    settings = get_settings()
    return (settings.sendgrid_alert_to or settings.sendgrid_from or "").strip()


def _parse_template_ids(raw: str) -> dict[str, str]:
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("sendgrid_templates_parse_failed")
        return {}
    if not isinstance(parsed, dict):
        logger.warning("sendgrid_templates_invalid_shape")
        return {}
    return {
        str(key): value.strip()
        for key, value in parsed.items()
        if isinstance(value, str) and value.strip()
    }


def build_fallback_text(kind: str, merged: dict[str, Any]) -> str:
    lines: list[str] = []
    preheader = merged.get("preheader")
    if isinstance(preheader, str) and preheader.strip():
        lines.append(preheader.strip())

    for key, value in merged.items():
        lowered = key.lower()
        if not isinstance(value, str) or not value or ("url" not in lowered and "link" not in lowered):
            continue
        if value not in lines:
            lines.append(value)

    if not lines:
        lines.append(f"Notificación {kind}. Revisa tu panel de Devocional Maná.")
    return "\n\n".join(lines)


class SendGridNotifier:
    """Transactional email through the SendGrid v3 mail send API.

    A configured dynamic template is tried first; when it is missing or the
    send fails, a plain-text rendition of the same data is sent instead.
    `send` reports failures through NotificationResult and never raises.
    """

    def __init__(
        self,
        *,
        api_key: str,
        sender: str,
        template_ids: dict[str, str] | None = None,
        site_url: str = "",
        support_email: str = "",
        timeout_seconds: float = SENDGRID_TIMEOUT_SECONDS,
    ) -> None:
        self.api_key = api_key
        self.sender = sender
        self.template_ids = template_ids or {}
        self.site_url = site_url.rstrip("/")
        self.support_email = support_email
        self.timeout_seconds = timeout_seconds

    def compose(self, kind: str, data: dict[str, Any] | None) -> dict[str, Any]:
        defaults = NOTIFICATION_KINDS[kind]
        merged: dict[str, Any] = {
            "site_url": self.site_url,
            "login_url": f"{self.site_url}/auth/signin" if self.site_url else "",
            "support_email": self.support_email,
            "year": datetime.now(timezone.utc).year,
            "subject": defaults.subject,
            "preheader": defaults.preheader,
            "tag": defaults.tag,
        }
        merged.update(data or {})
        return merged

    async def send(self, kind: str, to: str, data: dict[str, Any] | None = None) -> NotificationResult:
        if kind not in NOTIFICATION_KINDS:
            logger.warning("notification_kind_unknown", kind=kind)
            return NotificationResult(ok=False, error="unknown_kind")
        if not to:
            return NotificationResult(ok=False, error="missing_recipient")
        if not self.api_key or not self.sender:
            logger.warning("notification_not_configured", kind=kind)
            return NotificationResult(ok=False, error="missing_env")

        merged = self.compose(kind, data)
        template_id = self.template_ids.get(kind)
        if template_id:
            primary = await self._post(
                kind=kind,
                body=self._template_body(to=to, template_id=template_id, merged=merged),
            )
            if primary.ok:
                return primary
            logger.error(
                "notification_template_send_failed",
                kind=kind,
                status=primary.status,
                error=primary.error,
            )
        else:
            logger.warning("notification_template_missing", kind=kind)

        return await self._post(kind=kind, body=self._text_body(to=to, kind=kind, merged=merged))

    def _base_body(self, merged: dict[str, Any]) -> dict[str, Any]:
        body: dict[str, Any] = {"from": {"email": self.sender, "name": SENDGRID_FROM_NAME}}
        tag = merged.get("tag")
        if isinstance(tag, str) and tag:
            body["categories"] = [tag]
        return body

    def _template_body(self, *, to: str, template_id: str, merged: dict[str, Any]) -> dict[str, Any]:
        body = self._base_body(merged)
        body["template_id"] = template_id
        body["personalizations"] = [
            {
                "to": [{"email": to}],
                "subject": str(merged["subject"]),
                "dynamic_template_data": merged,
            }
        ]
        return body

    def _text_body(self, *, to: str, kind: str, merged: dict[str, Any]) -> dict[str, Any]:
        body = self._base_body(merged)
        body["personalizations"] = [{"to": [{"email": to}]}]
        body["subject"] = str(merged.get("subject") or f"Notificación {kind}")
        body["content"] = [{"type": "text/plain", "value": build_fallback_text(kind, merged)}]
        return body

    async def _post(self, *, kind: str, body: dict[str, Any]) -> NotificationResult:
        request_id = f"sg-{uuid.uuid4().hex}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(
                    SENDGRID_MAIL_SEND_URL,
                    json=json.loads(json.dumps(body, default=str)),
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "X-Request-Id": request_id,
                    },
                )
        except httpx.HTTPError as exc:
            logger.error("notification_send_exception", kind=kind, request_id=request_id, error=str(exc))
            return NotificationResult(ok=False, status=0, error=str(exc) or type(exc).__name__)

        if 200 <= response.status_code < 300:
            logger.info("notification_sent", kind=kind, request_id=request_id, status=response.status_code)
            return NotificationResult(ok=True, status=response.status_code)

        error = response.text[:ERROR_BODY_LIMIT] or "sendgrid_error"
        logger.error("notification_send_failed", kind=kind, request_id=request_id, status=response.status_code)
        return NotificationResult(ok=False, status=response.status_code, error=error)


def get_notifier() -> Notifier:
    settings = get_settings()
    return SendGridNotifier(
        api_key=settings.sendgrid_api_key,
        sender=settings.sendgrid_from,
        template_ids=_parse_template_ids(settings.sendgrid_templates_json),
        site_url=settings.site_url,
        support_email=get_default_support_email(),
    )


async def notify(kind: str, to: str | None, data: dict[str, Any] | None = None) -> NotificationResult:
    """Best-effort send; unexpected notifier errors are logged and reported as a failed result."""
    if not to:
        return NotificationResult(ok=False, error="missing_recipient")
    try:
        return await get_notifier().send(kind, to, data)
    except Exception as exc:
        logger.exception("notification_dispatch_failed", kind=kind)
        return NotificationResult(ok=False, error=str(exc) or type(exc).__name__)
