from __future__ import annotations

import pytest
from sqlalchemy import func, select

from retos.db.models.entitlements import Entitlement
from retos.db.repo.entitlements_repo import EntitlementsRepo
from retos.db.session import SessionLocal
from retos.entitlements.errors import EntitlementNotFoundError
from retos.entitlements.service import EntitlementService


@pytest.mark.asyncio
async def test_repeated_grant_keeps_one_row_per_product() -> None:
    async with SessionLocal.begin() as session:
        first = await EntitlementService.grant(session, email="Ana@Example.com", sku="retos")
    async with SessionLocal.begin() as session:
        second = await EntitlementService.grant(session, email="ana@example.com ", sku="retos")

    assert first.activated == ("retos",)
    assert second.activated == ()

    async with SessionLocal.begin() as session:
        count = await session.scalar(select(func.count()).select_from(Entitlement))
        rows = await EntitlementsRepo.list_by_email(session, email="ana@example.com")

    assert count == 1
    assert [(row.product, row.active) for row in rows] == [("retos", True)]


@pytest.mark.asyncio
async def test_combo_grant_expands_to_both_products() -> None:
    async with SessionLocal.begin() as session:
        await EntitlementService.grant(session, email="combo@example.com", sku="agenda")
    async with SessionLocal.begin() as session:
        result = await EntitlementService.grant(session, email="combo@example.com", sku="combo")

    assert result.products == ("retos", "agenda")
    assert result.activated == ("retos",)

    async with SessionLocal.begin() as session:
        rows = await EntitlementsRepo.list_by_email(session, email="combo@example.com")

    assert sorted((row.product, row.active) for row in rows) == [("agenda", True), ("retos", True)]


@pytest.mark.asyncio
async def test_revoke_then_grant_reactivates_same_row() -> None:
    async with SessionLocal.begin() as session:
        await EntitlementService.grant(session, email="rev@example.com", sku="agenda")
        [original] = await EntitlementsRepo.list_by_email(session, email="rev@example.com")
        original_id = original.id

    async with SessionLocal.begin() as session:
        await EntitlementService.revoke(session, email="rev@example.com", product="agenda")
    async with SessionLocal.begin() as session:
        regrant = await EntitlementService.grant(session, email="rev@example.com", sku="agenda")

    assert regrant.activated == ("agenda",)
    async with SessionLocal.begin() as session:
        [row] = await EntitlementsRepo.list_by_email(session, email="rev@example.com")
    assert row.id == original_id
    assert row.active is True


@pytest.mark.asyncio
async def test_revoke_unknown_entitlement_raises() -> None:
    with pytest.raises(EntitlementNotFoundError):
        async with SessionLocal.begin() as session:
            await EntitlementService.revoke(session, email="nobody@example.com", product="retos")
