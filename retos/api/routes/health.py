from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from retos.core.config import get_settings
from retos.db.session import SessionLocal

router = APIRouter(tags=["health"])


def _check_result(error: str | None = None) -> dict[str, Any]:
    if error is None:
        return {"status": "ok"}
    return {"status": "failed", "error": error}


async def _check_database() -> dict[str, Any]:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        return _check_result("database_unavailable")
    return _check_result()


async def _check_redis() -> dict[str, Any]:
    redis_client = Redis.from_url(get_settings().redis_url)
    try:
        if await redis_client.ping() is not True:
            return _check_result("unexpected redis ping response")
    except Exception:
        return _check_result("redis_unavailable")
    finally:
        await redis_client.aclose()
    return _check_result()


async def collect_checks() -> dict[str, dict[str, Any]]:
    database, redis_check = await asyncio.gather(_check_database(), _check_redis())
    return {"database": database, "redis": redis_check}


def _respond(checks: dict[str, dict[str, Any]], *, ok_label: str, failed_label: str) -> JSONResponse:
    healthy = all(check.get("status") == "ok" for check in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": ok_label if healthy else failed_label, "checks": checks},
    )


@router.get("/health")
async def health() -> JSONResponse:
    return _respond(await collect_checks(), ok_label="ok", failed_label="degraded")


@router.get("/ready")
async def ready() -> JSONResponse:
    return _respond(await collect_checks(), ok_label="ready", failed_label="not_ready")
