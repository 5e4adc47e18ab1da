from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from retos.db.models.orders import Order


class OrdersRepo:
    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        email: str | None,
        sku: str,
        provider: str,
        status: str,
        amount: int | None,
        currency: str | None,
        raw: dict[str, object],
    ) -> Order:
        order = Order(
            email=email,
            sku=sku,
            provider=provider,
            status=status,
            amount=amount,
            currency=currency,
            raw=raw,
        )
        session.add(order)
        await session.flush()
        return order

    @staticmethod
    async def list_for_report(
        session: AsyncSession,
        *,
        provider: str | None,
        limit: int,
    ) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        if provider:
            stmt = stmt.where(Order.provider == provider.strip().lower())
        stmt = stmt.limit(max(1, int(limit)))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_by_email(session: AsyncSession, *, email: str) -> list[Order]:
        stmt = select(Order).where(Order.email == email).order_by(Order.created_at.asc(), Order.id.asc())
        result = await session.execute(stmt)
        return list(result.scalars().all())
