"""
Pytest fixtures for the inventory engine test suite.

Every test gets a fresh in-memory SQLite database (aiosqlite, StaticPool so
the single connection survives across awaits) with foreign keys switched on
and the ledger immutability listeners registered. API tests run the FastAPI
app in-process through httpx with the session and engine config overridden.
"""

import os

# The app module builds its engine at import time; keep it off PostgreSQL.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

from decimal import Decimal
from typing import Any, Dict, List

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from core.config import EngineConfig, get_engine_config
from db.base import Base
from db.database import enable_sqlite_foreign_keys, get_async_session
from db.immutability import register_immutability_listeners
from main import app
from services import bom, catalog, orders


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(eng)
    register_immutability_listeners()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def db(engine):
    maker = async_sessionmaker(engine, expire_on_commit=False)
    async with maker() as session:
        yield session


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
async def client(db, engine_config):
    async def _session():
        yield db

    app.dependency_overrides[get_async_session] = _session
    app.dependency_overrides[get_engine_config] = lambda: engine_config
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# =============================================================================
# Data helpers
# =============================================================================


@pytest.fixture
def make_item(db):
    """Create and commit an inventory item; returns the ORM row."""

    async def _make(name: str = "Flour", unit: str = "grams", quantity: Any = 0, **kwargs):
        item = await catalog.create(db, name=name, unit=unit, quantity=quantity, **kwargs)
        await db.commit()
        return item

    return _make


@pytest.fixture
def make_recipe(db):
    """Replace a menu item's recipe from (item_id, quantity, unit) tuples and commit."""

    async def _make(menu_item_id: str, *ingredients):
        entries = await bom.set_recipe(
            db,
            menu_item_id,
            [
                {"inventory_item_id": item_id, "quantity_required": qty, "unit": unit}
                for item_id, qty, unit in ingredients
            ],
        )
        await db.commit()
        return entries

    return _make


@pytest.fixture
def place(db, engine_config):
    """Place an order for {menu_item_id: qty}; prices are irrelevant to stock."""

    async def _place(lines: Dict[str, int], config: EngineConfig = None, actor: str = "cashier"):
        payload: List[dict] = [
            {"menu_item_id": menu_item_id, "qty": qty, "price": Decimal("3.50")}
            for menu_item_id, qty in lines.items()
        ]
        return await orders.place_order(
            db,
            total=Decimal("3.50") * sum(lines.values()),
            payment_method="CASH",
            lines=payload,
            actor=actor,
            config=config or engine_config,
        )

    return _place
