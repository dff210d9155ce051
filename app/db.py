from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import get_settings


_settings = get_settings()

DATABASE_URL: str = _settings.database_url
ECHO_SQL: bool = _settings.debug


def _engine_options(database_url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": ECHO_SQL}
    if database_url.startswith("postgresql+asyncpg"):
        # a timed-out statement aborts the whole transaction
        options["connect_args"] = {
            "server_settings": {
                "statement_timeout": str(_settings.db_statement_timeout_ms),
            },
        }
    return options


engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    **_engine_options(DATABASE_URL),
)

SessionFactory: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
)


async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Provides an AsyncSession through Depends.
    """
    async with SessionFactory() as session:
        yield session


def dialect_name(db: AsyncSession) -> str:
    return db.get_bind().dialect.name


def upsert_insert(db: AsyncSession, model: Any):
    """
    Returns a dialect-specific INSERT construct for `model`
    that supports `on_conflict_do_nothing()`.
    """
    if dialect_name(db) == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)
