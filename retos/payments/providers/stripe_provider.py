from __future__ import annotations

from collections.abc import Mapping

import stripe

from retos.core.emails import normalize_email
from retos.entitlements.catalog import resolve_sku
from retos.payments.providers.base import as_currency, as_dict, as_int
from retos.payments.types import PaymentFacts

SIGNATURE_HEADER = "stripe-signature"
CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
HANDLED_EVENT_TYPES = frozenset({CHECKOUT_COMPLETED, PAYMENT_INTENT_SUCCEEDED})


class StripeProvider:
    name = "stripe"

    def __init__(self, *, webhook_secret: str) -> None:
        self._webhook_secret = webhook_secret

    def verify(self, raw: bytes, headers: Mapping[str, str]) -> bool:
        sig_header = headers.get(SIGNATURE_HEADER)
        if not self._webhook_secret or not sig_header:
            return False
        try:
            stripe.Webhook.construct_event(
                payload=raw,
                sig_header=sig_header,
                secret=self._webhook_secret,
            )
        except (ValueError, stripe.SignatureVerificationError):
            return False
        return True

    def extract_payment_facts(self, event: dict[str, object]) -> PaymentFacts | None:
        event_type = event.get("type")
        if event_type not in HANDLED_EVENT_TYPES:
            return None

        obj = as_dict(as_dict(event.get("data")).get("object"))
        metadata = as_dict(obj.get("metadata"))

        if event_type == CHECKOUT_COMPLETED:
            if obj.get("payment_status") not in (None, "paid", "no_payment_required"):
                return None
            customer_details = as_dict(obj.get("customer_details"))
            email = normalize_email(customer_details.get("email")) or normalize_email(
                obj.get("customer_email")
            )
            amount = as_int(obj.get("amount_total"))
        else:
            # Checkout creates its own intent without our metadata; checkout.session.completed fulfills those.
            if not isinstance(metadata.get("sku"), str) or not metadata["sku"].strip():
                return None
            email = normalize_email(obj.get("receipt_email"))
            amount = as_int(obj.get("amount_received"))
            if amount is None:
                amount = as_int(obj.get("amount"))

        return PaymentFacts(
            provider=self.name,
            email=email,
            sku=resolve_sku(metadata.get("sku")),
            amount=amount,
            currency=as_currency(obj.get("currency")),
            status="paid",
            raw=event,
        )
