from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class PaymentFacts:
    provider: str
    email: str | None
    sku: str
    amount: int | None
    currency: str | None
    status: str = "paid"
    raw: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class FulfillmentResult:
    order_id: int
    provider: str
    sku: str
    email: str | None
    products: tuple[str, ...] = ()
    activated: tuple[str, ...] = ()
    outbox_row_id: int | None = None
    agenda_delivery: str | None = None
