from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

from retos.core.config import get_settings
from retos.core.emails import normalize_email
from retos.entitlements.catalog import SKUS
from retos.entitlements.errors import EntitlementError
from retos.entitlements.granting import grant_access, notify_activated_products
from retos.services.grant_tokens import (
    InvalidGrantTokenError,
    decode_inbound_grant_token,
    extract_bearer_token,
)
from retos.services.internal_auth import extract_client_ip
from retos.services.rate_limit import get_rate_limiter

router = APIRouter(tags=["grant"])
logger = structlog.get_logger(__name__)


def _error(status_code: int, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": code})


async def _read_json_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _pick_product(claims: dict[str, Any], body: dict[str, Any]) -> object:
    # Legacy tokens carry `sku` instead of `product`.
    for source in (claims, body):
        for key in ("product", "sku"):
            value = source.get(key)
            if value:
                return value
    return None


def _fallback_client_key(request: Request) -> str:
    # Unparseable peers still get their own bucket instead of one shared by every caller.
    host = request.client.host.strip() if request.client is not None and request.client.host else ""
    return host or "unknown"


@router.post("/api/grant")
async def grant_entitlement(request: Request) -> JSONResponse:
    settings = get_settings()
    client_ip = extract_client_ip(request, trusted_proxies=settings.internal_api_trusted_proxies)
    if client_ip is None:
        client_ip = _fallback_client_key(request)
        logger.warning("grant_api_client_ip_unresolved", client_key=client_ip)

    allowed = await get_rate_limiter().hit(
        f"grant:{client_ip}",
        limit=settings.grant_api_rate_limit,
        window_seconds=settings.grant_api_rate_window_seconds,
    )
    if not allowed:
        logger.warning("grant_api_rate_limited", client_ip=client_ip)
        return _error(status.HTTP_429_TOO_MANY_REQUESTS, "rate_limited")

    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        return _error(status.HTTP_401_UNAUTHORIZED, "unauthorized")
    try:
        claims = decode_inbound_grant_token(
            token,
            secret=settings.shared_secret,
            issuer=settings.grant_api_issuer,
            audience=settings.grant_api_audience,
        )
    except InvalidGrantTokenError as exc:
        logger.warning("grant_api_invalid_token", client_ip=client_ip, error=str(exc))
        return _error(status.HTTP_401_UNAUTHORIZED, "unauthorized")

    body = await _read_json_body(request)
    email = normalize_email(claims.get("email")) or normalize_email(body.get("email"))
    raw_product = _pick_product(claims, body)
    product = raw_product.strip().lower() if isinstance(raw_product, str) else None
    if email is None:
        return _error(status.HTTP_400_BAD_REQUEST, "invalid_email")
    if product not in SKUS:
        return _error(status.HTTP_400_BAD_REQUEST, "invalid_product")

    try:
        grant = await grant_access(email=email, sku=product)
    except EntitlementError:
        return _error(status.HTTP_400_BAD_REQUEST, "invalid_request")

    await notify_activated_products(grant, retos_kind="external_grant")
    logger.info(
        "grant_api_granted",
        sku=grant.sku,
        products=list(grant.products),
        activated=list(grant.activated),
        agenda_delivery=grant.agenda_delivery,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"ok": True, "products": list(grant.products), "activated": list(grant.activated)},
    )
