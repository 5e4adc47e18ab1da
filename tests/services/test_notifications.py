from __future__ import annotations

from typing import Any

import httpx
import pytest

from retos.services import notifications
from retos.services.notifications import SendGridNotifier, build_fallback_text


class _Response:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text


class _Client:
    def __init__(self, calls: list[dict[str, Any]], responses: list[object]) -> None:
        self._calls = calls
        self._responses = responses

    async def __aenter__(self) -> "_Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    async def post(self, url: str, json: dict[str, Any], headers: dict[str, str]) -> _Response:
        self._calls.append({"url": url, "json": json, "headers": headers})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _patch_http_client(monkeypatch: pytest.MonkeyPatch, calls: list[dict[str, Any]], responses: list[object]) -> None:
    def factory(timeout: float) -> _Client:  # noqa: ARG001
        return _Client(calls, responses)

    monkeypatch.setattr(notifications.httpx, "AsyncClient", factory)


def _notifier(**overrides: object) -> SendGridNotifier:
    options: dict[str, Any] = {
        "api_key": "SG.test",
        "sender": "hola@example.com",
        "site_url": "https://retos.example.com/",
        "support_email": "ops@example.com",
    }
    options.update(overrides)
    return SendGridNotifier(**options)


@pytest.mark.asyncio
async def test_send_uses_dynamic_template_when_configured(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    _patch_http_client(monkeypatch, calls, [_Response(202)])
    notifier = _notifier(template_ids={"welcome_retos": "d-welcome"})

    result = await notifier.send("welcome_retos", "ana@example.com", {"order_id": 9})

    assert result.ok is True
    assert result.status == 202
    body = calls[0]["json"]
    assert calls[0]["url"] == notifications.SENDGRID_MAIL_SEND_URL
    assert calls[0]["headers"]["Authorization"] == "Bearer SG.test"
    assert body["template_id"] == "d-welcome"
    assert body["categories"] == ["Bienvenida"]
    personalization = body["personalizations"][0]
    assert personalization["to"] == [{"email": "ana@example.com"}]
    assert personalization["subject"] == "¡Bienvenido a 21 Retos!"
    assert personalization["dynamic_template_data"]["order_id"] == 9
    assert personalization["dynamic_template_data"]["site_url"] == "https://retos.example.com"


@pytest.mark.asyncio
async def test_send_falls_back_to_plain_text_when_template_send_fails(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    _patch_http_client(monkeypatch, calls, [_Response(400, "bad template"), _Response(202)])
    notifier = _notifier(template_ids={"agenda_activation": "d-agenda"})

    result = await notifier.send("agenda_activation", "ana@example.com")

    assert result.ok is True
    assert len(calls) == 2
    fallback = calls[1]["json"]
    assert "template_id" not in fallback
    assert fallback["subject"] == "Tu Agenda Devocional ya está lista"
    assert fallback["content"][0]["type"] == "text/plain"


@pytest.mark.asyncio
async def test_send_without_template_goes_straight_to_plain_text(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    _patch_http_client(monkeypatch, calls, [_Response(202)])

    result = await _notifier().send("payment_receipt", "ana@example.com", {"amount": 25.0})

    assert result.ok is True
    assert len(calls) == 1
    assert "content" in calls[0]["json"]


@pytest.mark.asyncio
async def test_send_reports_transport_errors_without_raising(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    _patch_http_client(monkeypatch, calls, [httpx.ConnectError("boom")])

    result = await _notifier().send("license_revoked", "ana@example.com")

    assert result.ok is False
    assert result.status == 0
    assert result.error == "boom"


@pytest.mark.asyncio
async def test_send_rejects_missing_configuration_and_unknown_kind(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    _patch_http_client(monkeypatch, calls, [])

    unconfigured = await _notifier(api_key="").send("welcome_retos", "ana@example.com")
    unknown = await _notifier().send("newsletter", "ana@example.com")

    assert unconfigured == notifications.NotificationResult(ok=False, error="missing_env")
    assert unknown.ok is False
    assert calls == []


def test_build_fallback_text_collects_preheader_and_links() -> None:
    text = build_fallback_text(
        "agenda_reactivated",
        {"preheader": "Hola", "agenda_url": "https://agenda.example.com", "login_url": "https://x/login", "count": 1},
    )

    assert text == "Hola\n\nhttps://agenda.example.com\n\nhttps://x/login"


def test_build_fallback_text_without_links_uses_generic_line() -> None:
    assert build_fallback_text("welcome_retos", {"site_url": ""}) == (
        "Notificación welcome_retos. Revisa tu panel de Devocional Maná."
    )


@pytest.mark.asyncio
async def test_notify_never_raises(monkeypatch) -> None:
    class _BrokenNotifier:
        async def send(self, kind, to, data=None):  # noqa: ARG002
            raise RuntimeError("kaput")

    monkeypatch.setattr(notifications, "get_notifier", lambda: _BrokenNotifier())

    result = await notifications.notify("welcome_retos", "ana@example.com")

    assert result.ok is False
    assert result.error == "kaput"
    assert (await notifications.notify("welcome_retos", None)).error == "missing_recipient"
