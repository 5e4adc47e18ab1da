from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class EntitlementGrantResult:
    email: str
    sku: str
    products: tuple[str, ...]
    activated: tuple[str, ...]

    @property
    def includes_agenda(self) -> bool:
        return "agenda" in self.products


@dataclass(frozen=True, slots=True)
class AccessGrant:
    email: str
    sku: str
    products: tuple[str, ...]
    activated: tuple[str, ...]
    outbox_row_id: int | None = None
    agenda_delivery: str | None = None
