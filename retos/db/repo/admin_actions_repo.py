from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from retos.db.models.admin_actions import AdminAction


class AdminActionsRepo:
    @staticmethod
    async def create(
        session: AsyncSession,
        *,
        actor: str,
        action: str,
        target_email: str | None,
        payload: dict[str, object],
        ip: str | None,
        user_agent: str | None,
    ) -> AdminAction:
        entry = AdminAction(
            actor=actor,
            action=action,
            target_email=target_email,
            payload=payload,
            ip=ip,
            user_agent=user_agent,
        )
        session.add(entry)
        await session.flush()
        return entry
