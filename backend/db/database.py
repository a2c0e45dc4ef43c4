from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from core.config import settings
from db.base import Base
from db.inventory.item import InventoryItem  # noqa: F401
from db.inventory.bom import BomEntry  # noqa: F401
from db.inventory.ledger import LedgerEntry  # noqa: F401
from db.order import Order, OrderLine  # noqa: F401
from db.immutability import register_immutability_listeners


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE clauses unless foreign keys are switched on per connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _fk_pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(settings.database_url, echo=settings.database_echo)
enable_sqlite_foreign_keys(engine)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)
register_immutability_listeners()


async def create_db_and_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session
