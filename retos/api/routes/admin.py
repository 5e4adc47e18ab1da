from __future__ import annotations

from datetime import date, datetime
from typing import Literal

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from retos.agenda.outbox import OUTCOME_OK, enqueue_agenda_grant
from retos.core.config import get_settings
from retos.core.emails import normalize_email
from retos.db.repo.admin_actions_repo import AdminActionsRepo
from retos.db.repo.grant_outbox_repo import GrantOutboxRepo
from retos.db.repo.orders_repo import OrdersRepo
from retos.db.session import SessionLocal
from retos.entitlements.errors import EntitlementNotFoundError
from retos.entitlements.granting import propagate_access_grant, stage_access_grant
from retos.entitlements.service import EntitlementService
from retos.payments.reports import build_donation_row, render_donations_csv
from retos.services.internal_auth import (
    extract_client_ip,
    is_client_ip_allowed,
    is_internal_request_authenticated,
)
from retos.services.notifications import notify

router = APIRouter(prefix="/api/admin", tags=["internal", "admin"])
logger = structlog.get_logger(__name__)
DEFAULT_ACTOR = "internal"


class AdminGrantRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    product: Literal["retos", "agenda", "combo"]


class AdminRevokeRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    product: Literal["retos", "agenda"]


class AdminRegrantRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)


class AdminGrantResponse(BaseModel):
    ok: bool
    products: list[str]
    activated: list[str]
    agenda_delivery: str | None


class AdminRegrantResponse(BaseModel):
    ok: bool
    row_id: int
    agenda_delivery: str


class GrantOutboxItem(BaseModel):
    id: int
    email: str | None
    product: str
    status: str
    tries: int
    last_try: datetime | None
    last_error: str | None
    created_at: datetime


class GrantOutboxListResponse(BaseModel):
    items: list[GrantOutboxItem]


def _assert_internal_access(request: Request) -> str | None:
    settings = get_settings()
    client_ip = extract_client_ip(request, trusted_proxies=settings.internal_api_trusted_proxies)
    if not is_internal_request_authenticated(request, expected_token=settings.internal_api_token):
        logger.warning("internal_admin_auth_failed", reason="invalid_token", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})
    if not is_client_ip_allowed(client_ip=client_ip, allowlist=settings.internal_api_allowlist):
        logger.warning("internal_admin_auth_failed", reason="ip_not_allowed", client_ip=client_ip)
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})
    return client_ip


def _require_email(raw_email: str) -> str:
    email = normalize_email(raw_email)
    if email is None:
        raise HTTPException(status_code=400, detail={"code": "E_INVALID_EMAIL"})
    return email


def _audit_context(request: Request, client_ip: str | None) -> dict[str, str | None]:
    return {
        "actor": request.headers.get("X-Admin-Actor") or DEFAULT_ACTOR,
        "ip": client_ip,
        "user_agent": request.headers.get("User-Agent"),
    }


@router.post("/grant", response_model=AdminGrantResponse)
async def admin_grant(payload: AdminGrantRequest, request: Request) -> AdminGrantResponse:
    client_ip = _assert_internal_access(request)
    email = _require_email(payload.email)

    async with SessionLocal.begin() as session:
        staged = await stage_access_grant(session, email=email, sku=payload.product)
        await AdminActionsRepo.create(
            session,
            action="admin.grant",
            target_email=email,
            payload={"product": payload.product, "activated": list(staged.activated)},
            **_audit_context(request, client_ip),
        )

    grant = await propagate_access_grant(staged)
    logger.info("admin_grant_applied", sku=payload.product, activated=list(grant.activated))
    return AdminGrantResponse(
        ok=True,
        products=list(grant.products),
        activated=list(grant.activated),
        agenda_delivery=grant.agenda_delivery,
    )


@router.post("/revoke")
async def admin_revoke(payload: AdminRevokeRequest, request: Request) -> dict[str, bool]:
    client_ip = _assert_internal_access(request)
    email = _require_email(payload.email)

    try:
        async with SessionLocal.begin() as session:
            await EntitlementService.revoke(session, email=email, product=payload.product)
            await AdminActionsRepo.create(
                session,
                action="admin.revoke",
                target_email=email,
                payload={"product": payload.product},
                **_audit_context(request, client_ip),
            )
    except EntitlementNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "E_ENTITLEMENT_NOT_FOUND"}) from exc

    await notify("license_revoked", email, {"product": payload.product})
    return {"ok": True}


@router.post("/regrant-agenda", response_model=AdminRegrantResponse)
async def admin_regrant_agenda(payload: AdminRegrantRequest, request: Request) -> AdminRegrantResponse:
    client_ip = _assert_internal_access(request)
    email = _require_email(payload.email)

    row_id, outcome = await enqueue_agenda_grant(email)
    async with SessionLocal.begin() as session:
        await AdminActionsRepo.create(
            session,
            action="admin.regrant_agenda",
            target_email=email,
            payload={"row_id": row_id, "agenda_delivery": outcome},
            **_audit_context(request, client_ip),
        )

    if outcome == OUTCOME_OK:
        await notify("agenda_reactivated", email, {"product": "agenda"})
    return AdminRegrantResponse(ok=True, row_id=row_id, agenda_delivery=outcome)


@router.get("/grant-outbox", response_model=GrantOutboxListResponse)
async def admin_grant_outbox(
    request: Request,
    status: Literal["pending", "ok", "error"] | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
) -> GrantOutboxListResponse:
    _assert_internal_access(request)
    async with SessionLocal.begin() as session:
        rows = await GrantOutboxRepo.list_recent(session, status=status, limit=limit)
        items = [
            GrantOutboxItem(
                id=row.id,
                email=row.email,
                product=row.product,
                status=row.status,
                tries=row.tries,
                last_try=row.last_try,
                last_error=row.last_error,
                created_at=row.created_at,
            )
            for row in rows
        ]
    return GrantOutboxListResponse(items=items)


@router.get("/reports/donations", response_model=None)
async def admin_donations_report(
    request: Request,
    format: Literal["json", "csv"] = Query(default="json"),
    provider: str | None = Query(default=None, max_length=16),
    limit: int = Query(default=5000, ge=1, le=50000),
) -> Response | dict[str, list[dict[str, object]]]:
    _assert_internal_access(request)
    async with SessionLocal.begin() as session:
        orders = await OrdersRepo.list_for_report(session, provider=provider, limit=limit)
        rows = [build_donation_row(order) for order in orders]

    if format == "csv":
        filename = f"donaciones-{date.today().isoformat()}.csv"
        return Response(
            content=render_donations_csv(rows),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return {"rows": rows}
