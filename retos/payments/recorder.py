from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from retos.core.emails import normalize_email
from retos.db.models.orders import Order
from retos.db.repo.orders_repo import OrdersRepo
from retos.payments.types import PaymentFacts

logger = structlog.get_logger(__name__)


async def record_order(session: AsyncSession, facts: PaymentFacts) -> Order:
    """Append one order row. Orders are never updated afterwards."""
    order = await OrdersRepo.create(
        session,
        email=normalize_email(facts.email),
        sku=facts.sku,
        provider=facts.provider,
        status=facts.status,
        amount=facts.amount,
        currency=facts.currency,
        raw=facts.raw,
    )
    logger.info(
        "order_recorded",
        order_id=order.id,
        provider=facts.provider,
        sku=facts.sku,
        amount=facts.amount,
        currency=facts.currency,
    )
    return order
