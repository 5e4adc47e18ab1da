from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from retos.api.routes import cron as cron_routes
from retos.main import app


def _settings(cron_secret: str = "") -> SimpleNamespace:
    return SimpleNamespace(cron_secret=cron_secret, agenda_grant_batch_size=50, agenda_grant_max_tries=10)


@pytest.fixture
def sweeps(monkeypatch) -> list[dict[str, int]]:
    calls: list[dict[str, int]] = []

    async def fake_sweep(*, batch_size: int, max_tries: int) -> dict[str, int]:
        calls.append({"batch_size": batch_size, "max_tries": max_tries})
        return {"processed": 3, "succeeded": 2, "failed": 1}

    monkeypatch.setattr(cron_routes, "sweep_grant_outbox", fake_sweep)
    return calls


def test_grant_retry_runs_one_bounded_sweep(monkeypatch, sweeps) -> None:
    monkeypatch.setattr(cron_routes, "get_settings", lambda: _settings())

    response = TestClient(app).get("/cron/grant-retry")

    assert response.status_code == 200
    assert response.json() == {"ok": True, "processed": 3, "succeeded": 2, "failed": 1}
    assert sweeps == [{"batch_size": 50, "max_tries": 10}]


def test_grant_retry_requires_cron_secret_when_configured(monkeypatch, sweeps) -> None:
    monkeypatch.setattr(cron_routes, "get_settings", lambda: _settings("cron-secret"))
    client = TestClient(app)

    denied = client.get("/cron/grant-retry")
    allowed = client.get("/cron/grant-retry", headers={"Authorization": "Bearer cron-secret"})

    assert denied.status_code == 401
    assert allowed.status_code == 200
    assert len(sweeps) == 1


def test_grant_retry_returns_500_when_data_store_fails(monkeypatch) -> None:
    async def broken_sweep(*, batch_size: int, max_tries: int) -> dict[str, int]:
        raise ConnectionRefusedError("postgres down")

    monkeypatch.setattr(cron_routes, "get_settings", lambda: _settings())
    monkeypatch.setattr(cron_routes, "sweep_grant_outbox", broken_sweep)

    response = TestClient(app).get("/cron/grant-retry")

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "ConnectionRefusedError"}
