from __future__ import annotations

from sqlalchemy.engine import make_url

LOCAL_TEST_HOSTS = {"localhost", "127.0.0.1", "::1", "postgres", "retos_postgres"}


def integration_db_rejection_reason(database_url: str) -> str | None:
    parsed = make_url(database_url)
    db_name = (parsed.database or "").strip()
    host = (parsed.host or "").strip().lower()

    if parsed.get_backend_name() != "postgresql":
        return "integration tests run only against PostgreSQL"
    if "test" not in db_name.lower():
        return f"database name '{db_name}' does not look like a test database"
    if host not in LOCAL_TEST_HOSTS:
        return f"host '{host}' is not a local test host"
    return None


def assert_safe_integration_db(database_url: str) -> None:
    reason = integration_db_rejection_reason(database_url)
    if reason is None:
        return
    raise RuntimeError(
        "Refusing to TRUNCATE tables for integration tests: "
        f"{reason}. Point DATABASE_URL at a dedicated local DB such as 'retos_test'."
    )
