from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping

from retos.core.emails import normalize_email
from retos.entitlements.catalog import sku_from_reference
from retos.payments.providers.base import as_currency, as_dict, as_int
from retos.payments.types import PaymentFacts

SIGNATURE_HEADERS = (
    "wompi-signature",
    "x-wompi-event-signature",
    "x-webhook-signature",
    "x-signature",
)
SIGNATURE_PREFIX = "sha256="
APPROVED_STATUS = "APPROVED"


def compute_signature(raw: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()


def _signature_candidates(header_value: str) -> list[str]:
    candidates: list[str] = []
    for part in header_value.split(","):
        entry = part.strip()
        if entry.startswith(SIGNATURE_PREFIX):
            entry = entry[len(SIGNATURE_PREFIX):]
        if entry:
            candidates.append(entry.lower())
    return candidates


class WompiProvider:
    name = "wompi"

    def __init__(self, *, event_secret: str) -> None:
        self._event_secret = event_secret

    def signature_header(self, headers: Mapping[str, str]) -> str | None:
        for header_name in SIGNATURE_HEADERS:
            value = headers.get(header_name)
            if value:
                return value
        return None

    def verify(self, raw: bytes, headers: Mapping[str, str]) -> bool:
        header_value = self.signature_header(headers)
        if not self._event_secret or not header_value:
            return False

        expected = compute_signature(raw, self._event_secret)
        # Compare every candidate, no early exit.
        matched = False
        for candidate in _signature_candidates(header_value):
            if hmac.compare_digest(candidate, expected):
                matched = True
        return matched

    def extract_payment_facts(self, event: dict[str, object]) -> PaymentFacts | None:
        transaction = as_dict(as_dict(event.get("data")).get("transaction"))
        if not transaction:
            return None

        status = transaction.get("status")
        if not isinstance(status, str) or status.strip().upper() != APPROVED_STATUS:
            return None

        return PaymentFacts(
            provider=self.name,
            email=normalize_email(transaction.get("customer_email")),
            sku=sku_from_reference(transaction.get("reference")),
            amount=as_int(transaction.get("amount_in_cents")),
            currency=as_currency(transaction.get("currency")),
            status="paid",
            raw=event,
        )
