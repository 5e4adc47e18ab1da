from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from retos.db.session import dispose_engine

T = TypeVar("T")
logger = structlog.get_logger(__name__)


async def _run_job(job_name: str, awaitable: Awaitable[T]) -> T:
    # asyncpg connections are bound to the loop that opened them; every job starts and ends with an empty pool.
    await dispose_engine()
    started = time.monotonic()
    with structlog.contextvars.bound_contextvars(job=job_name):
        try:
            result = await awaitable
        finally:
            await dispose_engine()
        logger.info("async_job_finished", duration_ms=int((time.monotonic() - started) * 1000))
    return result


def run_async_job(awaitable: Awaitable[T], *, job_name: str = "async_job") -> T:
    return asyncio.run(_run_job(job_name, awaitable))
