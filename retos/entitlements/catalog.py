from __future__ import annotations

from retos.entitlements.errors import UnknownSkuError

PRODUCT_RETOS = "retos"
PRODUCT_AGENDA = "agenda"
SKU_COMBO = "combo"
DEFAULT_SKU = PRODUCT_RETOS

PRODUCTS: tuple[str, ...] = (PRODUCT_RETOS, PRODUCT_AGENDA)
SKU_PRODUCTS: dict[str, tuple[str, ...]] = {
    PRODUCT_RETOS: (PRODUCT_RETOS,),
    PRODUCT_AGENDA: (PRODUCT_AGENDA,),
    SKU_COMBO: (PRODUCT_RETOS, PRODUCT_AGENDA),
}
SKUS: tuple[str, ...] = tuple(SKU_PRODUCTS)

# Checked in order: a reference mentioning both bundles counts as combo.
REFERENCE_SKU_PRECEDENCE: tuple[str, ...] = (SKU_COMBO, PRODUCT_AGENDA)


def expand_sku(sku: str) -> tuple[str, ...]:
    products = SKU_PRODUCTS.get(sku)
    if products is None:
        raise UnknownSkuError(sku)
    return products


def resolve_sku(raw_sku: object, *, default: str = DEFAULT_SKU) -> str:
    if not isinstance(raw_sku, str):
        return default
    candidate = raw_sku.strip().lower()
    if candidate in SKU_PRODUCTS:
        return candidate
    return default


def sku_from_reference(reference: object) -> str:
    if not isinstance(reference, str):
        return DEFAULT_SKU
    lowered = reference.lower()
    for sku in REFERENCE_SKU_PRECEDENCE:
        if sku in lowered:
            return sku
    return DEFAULT_SKU
