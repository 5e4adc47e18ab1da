from __future__ import annotations

import hashlib
import hmac
import json
import time

from retos.payments.providers.stripe_provider import StripeProvider

SECRET = "whsec_test_secret"


def _sign(payload: bytes, *, secret: str = SECRET, timestamp: int | None = None) -> str:
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def _checkout_event(**object_overrides: object) -> dict[str, object]:
    session: dict[str, object] = {
        "id": "cs_test_123",
        "object": "checkout.session",
        "payment_status": "paid",
        "customer_details": {"email": "Donor@Example.com", "name": "Donor"},
        "customer_email": None,
        "amount_total": 2500,
        "currency": "usd",
        "metadata": {"sku": "combo"},
    }
    session.update(object_overrides)
    return {"id": "evt_1", "type": "checkout.session.completed", "data": {"object": session}}


def test_verify_accepts_valid_signature() -> None:
    provider = StripeProvider(webhook_secret=SECRET)
    payload = json.dumps(_checkout_event()).encode("utf-8")

    assert provider.verify(payload, {"stripe-signature": _sign(payload)}) is True


def test_verify_rejects_tampered_payload_wrong_secret_and_missing_header() -> None:
    provider = StripeProvider(webhook_secret=SECRET)
    payload = json.dumps(_checkout_event()).encode("utf-8")
    header = _sign(payload)

    assert provider.verify(payload.replace(b"2500", b"2600"), {"stripe-signature": header}) is False
    assert provider.verify(payload, {"stripe-signature": _sign(payload, secret="whsec_other")}) is False
    assert provider.verify(payload, {}) is False


def test_verify_rejects_stale_timestamp() -> None:
    provider = StripeProvider(webhook_secret=SECRET)
    payload = json.dumps(_checkout_event()).encode("utf-8")

    header = _sign(payload, timestamp=int(time.time()) - 3600)

    assert provider.verify(payload, {"stripe-signature": header}) is False


def test_extract_checkout_session_facts() -> None:
    facts = StripeProvider(webhook_secret=SECRET).extract_payment_facts(_checkout_event())

    assert facts is not None
    assert facts.provider == "stripe"
    assert facts.email == "donor@example.com"
    assert facts.sku == "combo"
    assert facts.amount == 2500
    assert facts.currency == "usd"


def test_extract_checkout_session_falls_back_to_customer_email_and_default_sku() -> None:
    event = _checkout_event(customer_details={}, customer_email="other@example.com", metadata={"sku": "vip"})

    facts = StripeProvider(webhook_secret=SECRET).extract_payment_facts(event)

    assert facts is not None
    assert facts.email == "other@example.com"
    assert facts.sku == "retos"


def test_extract_payment_intent_facts() -> None:
    event = {
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "receipt_email": "pi@example.com",
                "amount": 900,
                "amount_received": 1000,
                "currency": "usd",
                "metadata": {"sku": "agenda"},
            }
        },
    }

    facts = StripeProvider(webhook_secret=SECRET).extract_payment_facts(event)

    assert facts is not None
    assert facts.email == "pi@example.com"
    assert facts.sku == "agenda"
    assert facts.amount == 1000


def test_extract_ignores_payment_intents_created_by_checkout() -> None:
    provider = StripeProvider(webhook_secret=SECRET)

    for metadata in ({}, {"sku": ""}, {"sku": "   "}):
        event = {
            "type": "payment_intent.succeeded",
            "data": {
                "object": {
                    "receipt_email": "buyer@example.com",
                    "amount_received": 1000,
                    "currency": "usd",
                    "metadata": metadata,
                }
            },
        }
        assert provider.extract_payment_facts(event) is None


def test_extract_ignores_unpaid_sessions_and_other_events() -> None:
    provider = StripeProvider(webhook_secret=SECRET)

    assert provider.extract_payment_facts(_checkout_event(payment_status="unpaid")) is None
    assert provider.extract_payment_facts({"type": "charge.refunded", "data": {"object": {}}}) is None
