from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from caseboard_ai.core.config import settings
from caseboard_ai.db.base import Base
from caseboard_ai.db import models  # noqa: F401

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker | None = None


def ensure_engine(database_url: str | None = None) -> async_sessionmaker:
    """Build the engine and session factory once; later calls reuse them."""
    global _engine, _session_factory
    if _session_factory is None:
        _engine = create_async_engine(database_url or settings.DATABASE_URL, echo=False, future=True)
        _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


def SessionLocal():
    return ensure_engine()()


async def init_db(database_url: str | None = None):
    ensure_engine(database_url)
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine():
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
