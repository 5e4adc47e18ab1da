from __future__ import annotations

import csv
import io
from collections.abc import Iterable
from typing import Any

from retos.db.models.orders import Order

DONATION_REPORT_COLUMNS = (
    "order_id",
    "created_at",
    "provider",
    "sku",
    "status",
    "amount",
    "amount_cents",
    "currency",
    "email",
    "display_name",
    "country",
    "city",
    "document_type",
    "document_number",
    "phone",
)


def _record(value: object) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _first_text(*values: object) -> str:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _donor_from_wompi(raw: dict[str, Any]) -> dict[str, str]:
    transaction = _record(_record(raw.get("data")).get("transaction"))
    customer = _record(transaction.get("customer_data"))
    billing = _record(transaction.get("billing_data"))
    extra = _record(_record(transaction.get("payment_method")).get("extra"))
    return {
        "display_name": _first_text(
            customer.get("full_name"),
            customer.get("legal_name"),
            billing.get("full_name"),
            extra.get("card_holder"),
        ),
        "document_type": _first_text(
            customer.get("legal_id_type"),
            billing.get("legal_id_type"),
            extra.get("billing_document_type"),
        ),
        "document_number": _first_text(
            customer.get("legal_id"),
            billing.get("legal_id"),
            extra.get("billing_document"),
        ),
        "phone": _first_text(
            customer.get("phone_number"),
            billing.get("phone_number"),
            extra.get("phone_number"),
        ),
    }


def _donor_from_stripe(raw: dict[str, Any]) -> dict[str, str]:
    # Orders keep the whole event; the session or intent sits under data.object.
    payment_object = _record(_record(raw.get("data")).get("object")) or raw
    metadata = _record(payment_object.get("metadata"))
    details = _record(payment_object.get("customer_details"))
    address = _record(details.get("address"))
    return {
        "display_name": _first_text(metadata.get("donor_name"), details.get("name")),
        "phone": _first_text(metadata.get("donor_phone"), details.get("phone")),
        "country": _first_text(metadata.get("donor_country"), address.get("country")),
        "city": _first_text(metadata.get("donor_city"), address.get("city")),
    }


def build_donation_row(order: Order) -> dict[str, Any]:
    raw = _record(order.raw)
    if order.provider == "wompi":
        donor = _donor_from_wompi(raw)
    elif order.provider == "stripe":
        donor = _donor_from_stripe(raw)
    else:
        donor = {}

    return {
        "order_id": order.id,
        "created_at": order.created_at.isoformat() if order.created_at is not None else "",
        "provider": order.provider,
        "sku": order.sku,
        "status": order.status,
        "amount": order.amount / 100 if order.amount is not None else None,
        "amount_cents": order.amount,
        "currency": order.currency or "",
        "email": order.email or "",
        "display_name": donor.get("display_name", ""),
        "country": donor.get("country", ""),
        "city": donor.get("city", ""),
        "document_type": donor.get("document_type", ""),
        "document_number": donor.get("document_number", ""),
        "phone": donor.get("phone", ""),
    }


def render_donations_csv(rows: Iterable[dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=DONATION_REPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({column: "" if row.get(column) is None else row[column] for column in DONATION_REPORT_COLUMNS})
    return buffer.getvalue()
