from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from retos.core.emails import normalize_email
from retos.db.repo.entitlements_repo import EntitlementsRepo
from retos.entitlements.catalog import PRODUCTS, expand_sku
from retos.entitlements.errors import EntitlementNotFoundError, InvalidEmailError, UnknownSkuError
from retos.entitlements.types import EntitlementGrantResult

logger = structlog.get_logger(__name__)


class EntitlementService:
    @staticmethod
    async def grant(session: AsyncSession, *, email: str, sku: str) -> EntitlementGrantResult:
        normalized_email = normalize_email(email)
        if normalized_email is None:
            raise InvalidEmailError
        products = expand_sku(sku)

        previous = await EntitlementsRepo.get_active_flags(
            session,
            email=normalized_email,
            products=products,
        )
        await EntitlementsRepo.upsert_active(session, email=normalized_email, products=products)

        activated = tuple(product for product in products if not previous.get(product, False))
        logger.info(
            "entitlements_granted",
            sku=sku,
            products=list(products),
            activated=list(activated),
        )
        return EntitlementGrantResult(
            email=normalized_email,
            sku=sku,
            products=products,
            activated=activated,
        )

    @staticmethod
    async def revoke(session: AsyncSession, *, email: str, product: str) -> None:
        normalized_email = normalize_email(email)
        if normalized_email is None:
            raise InvalidEmailError
        if product not in PRODUCTS:
            raise UnknownSkuError(product)

        changed = await EntitlementsRepo.deactivate(session, email=normalized_email, product=product)
        if not changed:
            raise EntitlementNotFoundError
        logger.info("entitlement_revoked", product=product)
