from __future__ import annotations

from dataclasses import replace
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from retos.agenda.outbox import deliver_agenda_grant, stage_agenda_grant
from retos.db.session import SessionLocal
from retos.entitlements.catalog import PRODUCT_AGENDA, PRODUCT_RETOS
from retos.entitlements.service import EntitlementService
from retos.entitlements.types import AccessGrant
from retos.services.notifications import notify

logger = structlog.get_logger(__name__)
AGENDA_DEFERRED = "deferred"


async def stage_access_grant(session: AsyncSession, *, email: str, sku: str) -> AccessGrant:
    """Upsert entitlements and, for agenda-bearing SKUs, stage the outbox row in the same transaction."""
    result = await EntitlementService.grant(session, email=email, sku=sku)
    outbox_row_id = None
    if result.includes_agenda:
        outbox_row_id = await stage_agenda_grant(session, email=result.email)
    return AccessGrant(
        email=result.email,
        sku=result.sku,
        products=result.products,
        activated=result.activated,
        outbox_row_id=outbox_row_id,
    )


async def propagate_access_grant(grant: AccessGrant) -> AccessGrant:
    """Immediate Agenda attempt after commit. A failure here leaves the row for the sweeper."""
    if grant.outbox_row_id is None:
        return grant
    try:
        outcome = await deliver_agenda_grant(grant.outbox_row_id)
    except Exception:
        logger.exception("agenda_grant_immediate_attempt_error", row_id=grant.outbox_row_id)
        outcome = AGENDA_DEFERRED
    return replace(grant, agenda_delivery=outcome)


async def grant_access(*, email: str, sku: str) -> AccessGrant:
    async with SessionLocal.begin() as session:
        staged = await stage_access_grant(session, email=email, sku=sku)
    return await propagate_access_grant(staged)


async def notify_activated_products(
    grant: AccessGrant,
    *,
    retos_kind: str,
    data: dict[str, Any] | None = None,
) -> None:
    kinds = {PRODUCT_RETOS: retos_kind, PRODUCT_AGENDA: "agenda_activation"}
    for product in grant.activated:
        kind = kinds.get(product)
        if kind is None:
            continue
        result = await notify(kind, grant.email, {"product": product, "sku": grant.sku, **(data or {})})
        if not result.ok:
            logger.warning("grant_notification_failed", kind=kind, error=result.error)
