from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from retos.db.models.grant_outbox import GrantOutboxRow


class GrantOutboxRepo:
    @staticmethod
    async def create(session: AsyncSession, *, email: str | None) -> GrantOutboxRow:
        row = GrantOutboxRow(email=email, product="agenda", status="pending", tries=0)
        session.add(row)
        await session.flush()
        return row

    @staticmethod
    async def get_by_id(session: AsyncSession, row_id: int) -> GrantOutboxRow | None:
        return await session.get(GrantOutboxRow, row_id)

    @staticmethod
    async def list_due(
        session: AsyncSession,
        *,
        max_tries: int,
        limit: int,
    ) -> list[GrantOutboxRow]:
        stmt = (
            select(GrantOutboxRow)
            .where(
                GrantOutboxRow.status == "pending",
                GrantOutboxRow.tries < max_tries,
            )
            .order_by(GrantOutboxRow.created_at.asc(), GrantOutboxRow.id.asc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def record_attempt(
        session: AsyncSession,
        *,
        row_id: int,
        succeeded: bool,
        error: str | None,
        max_tries: int,
        attempted_at: datetime,
    ) -> tuple[str, int] | None:
        if succeeded:
            next_status = "ok"
        else:
            next_status = case(
                (GrantOutboxRow.tries + 1 >= max_tries, "error"),
                else_="pending",
            )
        stmt = (
            update(GrantOutboxRow)
            .where(GrantOutboxRow.id == row_id, GrantOutboxRow.status == "pending")
            .values(
                status=next_status,
                tries=GrantOutboxRow.tries + 1,
                last_try=attempted_at,
                last_error=None if succeeded else error,
            )
            .returning(GrantOutboxRow.status, GrantOutboxRow.tries)
        )
        result = await session.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return str(row[0]), int(row[1])

    @staticmethod
    async def mark_error(
        session: AsyncSession,
        *,
        row_id: int,
        error: str,
        attempted_at: datetime,
    ) -> tuple[str, int] | None:
        stmt = (
            update(GrantOutboxRow)
            .where(GrantOutboxRow.id == row_id, GrantOutboxRow.status == "pending")
            .values(
                status="error",
                tries=GrantOutboxRow.tries + 1,
                last_try=attempted_at,
                last_error=error,
            )
            .returning(GrantOutboxRow.status, GrantOutboxRow.tries)
        )
        result = await session.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return str(row[0]), int(row[1])

    @staticmethod
    async def list_recent(
        session: AsyncSession,
        *,
        status: str | None,
        limit: int,
    ) -> list[GrantOutboxRow]:
        stmt = select(GrantOutboxRow).order_by(GrantOutboxRow.created_at.desc(), GrantOutboxRow.id.desc())
        if status:
            stmt = stmt.where(GrantOutboxRow.status == status)
        stmt = stmt.limit(max(1, int(limit)))
        result = await session.execute(stmt)
        return list(result.scalars().all())
