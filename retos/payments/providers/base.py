from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from retos.payments.types import PaymentFacts


class PaymentProvider(Protocol):
    name: str

    def verify(self, raw: bytes, headers: Mapping[str, str]) -> bool: ...

    def extract_payment_facts(self, event: dict[str, object]) -> PaymentFacts | None: ...


def as_dict(value: object) -> dict[str, object]:
    return value if isinstance(value, dict) else {}


def as_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def as_currency(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    currency = value.strip()
    return currency or None
