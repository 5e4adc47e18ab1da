from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from retos.payments.errors import ProviderNotConfiguredError
from retos.payments.fulfillment import fulfill_payment
from retos.payments.providers import get_payment_provider

router = APIRouter(tags=["webhooks"])
logger = structlog.get_logger(__name__)

# Status returned for a bad signature, per provider.
SIGNATURE_REJECTION_STATUS = {
    "stripe": status.HTTP_400_BAD_REQUEST,
    "wompi": status.HTTP_401_UNAUTHORIZED,
}


def _error(status_code: int, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": code})


async def _handle_payment_webhook(request: Request, provider_name: str) -> JSONResponse:
    try:
        provider = get_payment_provider(provider_name)
    except ProviderNotConfiguredError:
        logger.error("payment_webhook_not_configured", provider=provider_name)
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "not_configured")

    raw = await request.body()
    if not provider.verify(raw, request.headers):
        logger.warning("payment_webhook_invalid_signature", provider=provider_name)
        return _error(SIGNATURE_REJECTION_STATUS[provider_name], "invalid_signature")

    try:
        event = json.loads(raw)
    except ValueError:
        logger.warning("payment_webhook_invalid_json", provider=provider_name)
        return _error(status.HTTP_400_BAD_REQUEST, "invalid_json")
    if not isinstance(event, dict):
        logger.warning("payment_webhook_invalid_json", provider=provider_name)
        return _error(status.HTTP_400_BAD_REQUEST, "invalid_json")

    facts = provider.extract_payment_facts(event)
    if facts is None:
        logger.info(
            "payment_webhook_ignored",
            provider=provider_name,
            event_type=event.get("type") or event.get("event"),
        )
        return JSONResponse(status_code=status.HTTP_200_OK, content={"ok": True, "ignored": True})

    try:
        result = await fulfill_payment(facts)
    except Exception:
        logger.exception("payment_webhook_processing_failed", provider=provider_name)
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "processing_failed")

    logger.info(
        "payment_webhook_processed",
        provider=provider_name,
        order_id=result.order_id,
        sku=result.sku,
        products=list(result.products),
        agenda_delivery=result.agenda_delivery,
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content={"ok": True})


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request) -> JSONResponse:
    return await _handle_payment_webhook(request, "stripe")


@router.post("/webhooks/wompi")
async def wompi_webhook(request: Request) -> JSONResponse:
    return await _handle_payment_webhook(request, "wompi")
