from __future__ import annotations

import asyncio
import re

import asyncpg
from sqlalchemy.engine import make_url

from retos.core.config import get_settings
from retos.core.integration_db_safety import integration_db_rejection_reason

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


async def _create_database_if_missing(database_url: str) -> None:
    reason = integration_db_rejection_reason(database_url)
    if reason is not None:
        raise RuntimeError(f"Refusing to create integration database: {reason}.")

    parsed = make_url(database_url)
    db_name = parsed.database or ""
    if IDENTIFIER_RE.fullmatch(db_name) is None:
        raise RuntimeError(f"Unsupported database name '{db_name}'. Use [A-Za-z0-9_] only.")

    conn = await asyncpg.connect(
        host=parsed.host,
        port=int(parsed.port or 5432),
        user=parsed.username,
        password=parsed.password,
        database="postgres",
    )
    try:
        if await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name):
            print(f"ensure_test_db: exists db={db_name}")  # noqa: T201
            return
        await conn.execute(f'CREATE DATABASE "{db_name}"')
        print(f"ensure_test_db: created db={db_name}")  # noqa: T201
    finally:
        await conn.close()


def main() -> int:
    asyncio.run(_create_database_if_missing(get_settings().database_url))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
