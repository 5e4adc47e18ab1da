from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from retos.db.models.entitlements import Entitlement


class EntitlementsRepo:
    @staticmethod
    async def get_active_flags(
        session: AsyncSession,
        *,
        email: str,
        products: Sequence[str],
    ) -> dict[str, bool]:
        stmt = select(Entitlement.product, Entitlement.active).where(
            Entitlement.email == email,
            Entitlement.product.in_(tuple(products)),
        )
        result = await session.execute(stmt)
        return {str(product): bool(active) for product, active in result.all()}

    @staticmethod
    async def upsert_active(
        session: AsyncSession,
        *,
        email: str,
        products: Sequence[str],
    ) -> list[str]:
        insert_stmt = postgresql_insert(Entitlement).values(
            [{"email": email, "product": product, "active": True} for product in products]
        )
        stmt = insert_stmt.on_conflict_do_update(
            index_elements=[Entitlement.email, Entitlement.product],
            set_={"active": True, "updated_at": func.now()},
        ).returning(Entitlement.product)
        result = await session.execute(stmt)
        return [str(product) for product in result.scalars()]

    @staticmethod
    async def deactivate(session: AsyncSession, *, email: str, product: str) -> bool:
        stmt = (
            update(Entitlement)
            .where(Entitlement.email == email, Entitlement.product == product)
            .values(active=False, updated_at=func.now())
            .returning(Entitlement.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_by_email(session: AsyncSession, *, email: str) -> list[Entitlement]:
        stmt = select(Entitlement).where(Entitlement.email == email).order_by(Entitlement.product.asc())
        result = await session.execute(stmt)
        return list(result.scalars().all())
