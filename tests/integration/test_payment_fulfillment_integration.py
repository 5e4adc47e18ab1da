from __future__ import annotations

import pytest
from sqlalchemy import select

from retos.agenda import outbox
from retos.db.models.grant_outbox import GrantOutboxRow
from retos.db.models.orders import Order
from retos.db.repo.entitlements_repo import EntitlementsRepo
from retos.db.session import SessionLocal
from retos.entitlements import granting
from retos.payments import fulfillment
from retos.payments.types import PaymentFacts
from retos.services.notifications import NotificationResult


class _RecordingClient:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def grant(self, email: str, *, idempotency_key: str) -> None:
        self.calls.append((email, idempotency_key))


@pytest.fixture
def sent(monkeypatch) -> list[tuple[str, str | None]]:
    notifications: list[tuple[str, str | None]] = []

    async def fake_notify(kind: str, to: str | None, data=None) -> NotificationResult:  # noqa: ARG001
        notifications.append((kind, to))
        return NotificationResult(ok=True, status=202)

    monkeypatch.setattr(fulfillment, "notify", fake_notify)
    monkeypatch.setattr(granting, "notify", fake_notify)
    return notifications


@pytest.mark.asyncio
async def test_wompi_combo_payment_grants_both_products_and_delivers_agenda(monkeypatch, sent) -> None:
    client = _RecordingClient()
    monkeypatch.setattr(outbox, "build_agenda_grant_client", lambda: client)
    facts = PaymentFacts(
        provider="wompi",
        email="Donor@Example.com",
        sku="combo",
        amount=5000000,
        currency="COP",
        raw={"data": {"transaction": {"id": "tx-1", "reference": "combo-abc", "status": "APPROVED"}}},
    )

    result = await fulfillment.fulfill_payment(facts)

    assert result.email == "donor@example.com"
    assert result.products == ("retos", "agenda")
    assert result.activated == ("retos", "agenda")
    assert result.agenda_delivery == "ok"
    assert client.calls == [("donor@example.com", f"agenda-grant-{result.outbox_row_id}")]

    async with SessionLocal.begin() as session:
        [order] = (await session.execute(select(Order))).scalars().all()
        entitlements = await EntitlementsRepo.list_by_email(session, email="donor@example.com")
        [row] = (await session.execute(select(GrantOutboxRow))).scalars().all()

    assert (order.provider, order.sku, order.amount, order.currency) == ("wompi", "combo", 5000000, "COP")
    assert sorted(entitlement.product for entitlement in entitlements) == ["agenda", "retos"]
    assert (row.status, row.tries) == ("ok", 1)
    assert sent == [
        ("payment_receipt", "donor@example.com"),
        ("welcome_retos", "donor@example.com"),
        ("agenda_activation", "donor@example.com"),
    ]


@pytest.mark.asyncio
async def test_payment_without_email_records_order_only(monkeypatch, sent) -> None:
    client = _RecordingClient()
    monkeypatch.setattr(outbox, "build_agenda_grant_client", lambda: client)

    result = await fulfillment.fulfill_payment(
        PaymentFacts(provider="stripe", email=None, sku="agenda", amount=1500, currency="usd")
    )

    assert result.email is None
    assert result.products == ()
    assert client.calls == []
    assert sent == []
    async with SessionLocal.begin() as session:
        orders = (await session.execute(select(Order))).scalars().all()
        rows = (await session.execute(select(GrantOutboxRow))).scalars().all()
    assert len(orders) == 1
    assert rows == []
