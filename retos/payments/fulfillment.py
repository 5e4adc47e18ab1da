from __future__ import annotations

import structlog

from retos.db.session import SessionLocal
from retos.entitlements.granting import notify_activated_products, propagate_access_grant, stage_access_grant
from retos.entitlements.types import AccessGrant
from retos.payments.recorder import record_order
from retos.payments.types import FulfillmentResult, PaymentFacts
from retos.services.notifications import notify

logger = structlog.get_logger(__name__)


async def fulfill_payment(facts: PaymentFacts) -> FulfillmentResult:
    """Record the order, activate entitlements and stage Agenda propagation atomically.

    The immediate Agenda attempt and the notifications run after commit and
    cannot change the result.
    """
    grant: AccessGrant | None = None
    async with SessionLocal.begin() as session:
        order = await record_order(session, facts)
        order_id = int(order.id)
        email = order.email
        if email is None:
            logger.warning("order_without_email", order_id=order_id, provider=facts.provider)
        else:
            grant = await stage_access_grant(session, email=email, sku=facts.sku)

    if grant is None:
        return FulfillmentResult(order_id=order_id, provider=facts.provider, sku=facts.sku, email=None)

    grant = await propagate_access_grant(grant)
    await _send_payment_notifications(order_id=order_id, facts=facts, grant=grant)
    return FulfillmentResult(
        order_id=order_id,
        provider=facts.provider,
        sku=facts.sku,
        email=grant.email,
        products=grant.products,
        activated=grant.activated,
        outbox_row_id=grant.outbox_row_id,
        agenda_delivery=grant.agenda_delivery,
    )


async def _send_payment_notifications(*, order_id: int, facts: PaymentFacts, grant: AccessGrant) -> None:
    receipt = {
        "order_id": order_id,
        "provider": facts.provider,
        "sku": facts.sku,
        "amount": facts.amount / 100 if facts.amount is not None else None,
        "amount_cents": facts.amount,
        "currency": (facts.currency or "").upper(),
    }
    result = await notify("payment_receipt", grant.email, receipt)
    if not result.ok:
        logger.warning("payment_receipt_not_sent", order_id=order_id, error=result.error)
    await notify_activated_products(grant, retos_kind="welcome_retos", data={"order_id": order_id})
