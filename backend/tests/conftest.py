"""
conftest.py — Shared pytest fixtures for the Solar EPC quotation engine test suite.

Engine tests are pure unit tests over in-memory catalog snapshots. HTTP tests
use FastAPI's TestClient with ``get_db`` overridden to a throwaway
``sqlite+aiosqlite`` file database (NullPool, one file per test).

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``app.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import asyncio
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any app imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def solar_catalog():
    """
    A rooftop-EPC catalog covering every BOS category plus two per-kW charges.

    Module:    20 /W, PER_WATT, no margin/tax (scenario: 15 kW @ 630 W → 302400)
    Inverter:  150000 /unit, 10 % margin, 18 % GST
    Structure: 90 /kg, 18 % GST
    ACDB is priced per watt, DCDB per unit (its table rule still yields watts).
    """
    from app.models.pricing_types import CatalogItem, PricingConvention
    return [
        CatalogItem(id="mod-630", name="630 Wp TOPCon Bifacial Module", unit_price=20,
                    pricing_convention=PricingConvention.PER_WATT, category="Solar Modules",
                    uom="WP", brand="Waaree"),
        CatalogItem(id="inv-15", name="SUN-15K-G04 Grid Tie Inverter", unit_price=150000,
                    tax_rate="0.18", margin_rate="0.10", category="Inverters", uom="NOS"),
        CatalogItem(id="str-gi", name="GI Elevated Module Mounting Structure", unit_price=90,
                    tax_rate="0.18", category="Mounting Structure", uom="KG"),
        CatalogItem(id="acdb-1", name="ACDB 3 Phase", unit_price="1.5",
                    pricing_convention="RS_PER_WATT", category="ACDB", tax_rate="0.18"),
        CatalogItem(id="dcdb-1", name="DCDB 2 In 2 Out", unit_price="1.2",
                    category="DCDB", tax_rate="0.18"),
        CatalogItem(id="earth-1", name="Chemical Earthing Kit", unit_price=3500,
                    category="Earthing", tax_rate="0.18"),
        CatalogItem(id="la-1", name="ESE Lightning Arrestor", unit_price=4500,
                    category="Lightning Arrestor", tax_rate="0.18"),
        CatalogItem(id="cab-4", name="DC 1C x 4 SQMM Cable", unit_price=85,
                    category="Cables", uom="MTR", tax_rate="0.18"),
        CatalogItem(id="mc4", name="MC4 Connector Pair", unit_price=120,
                    category="Connectors", tax_rate="0.18"),
        CatalogItem(id="inst", name="Installation & Commissioning", unit_price=4000,
                    pricing_convention="RS_PER_KW", category="Installation", tax_rate="0.18"),
        CatalogItem(id="liaison", name="DISCOM Liaisoning", unit_price=1000,
                    pricing_convention="PER_KW"),
    ]


@pytest.fixture(scope="session")
def system_15kw():
    """15 kW requested with 630 W modules → 24 modules, 15120 W, 15.12 kW."""
    from app.models.pricing_types import SystemConfiguration
    return SystemConfiguration(
        target_capacity_kw=15,
        module_wattage=630,
        module_item_id="mod-630",
        inverter_item_id="inv-15",
        structure_item_id="str-gi",
    )


@pytest.fixture(scope="session")
def bom_engine():
    """SolarBOMEngine is stateless; one instance serves the session."""
    from app.services.bom_engine import SolarBOMEngine
    return SolarBOMEngine()


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def api_client(tmp_path):
    """
    TestClient over the full app with a fresh SQLite database.

    The lifespan is not entered, so no connection to the configured
    PostgreSQL URL is attempted.
    """
    from fastapi.testclient import TestClient
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
    from sqlalchemy.pool import NullPool
    from app.db import Base, get_db
    from app.main import app
    from app.models import orm_models  # noqa: F401

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'quotations.db'}", poolclass=NullPool
    )

    async def _create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create_tables())
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _test_db
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.clear()
        asyncio.run(engine.dispose())


@pytest.fixture
def seeded_client(api_client, solar_catalog):
    """api_client with solar_catalog posted through the catalog API."""
    for item in solar_catalog:
        resp = api_client.post("/api/catalog/items", json={
            "id": item.id,
            "name": item.name,
            "unit_price": str(item.unit_price),
            "tax_rate": str(item.tax_rate) if item.tax_rate is not None else None,
            "margin_rate": str(item.margin_rate) if item.margin_rate is not None else None,
            "pricing_unit": item.pricing_convention.to_wire(),
            "category": item.category,
            "uom": item.uom,
            "brand": item.brand,
        })
        assert resp.status_code == 200, resp.text
    return api_client
