"""Database base and session setup."""
import logging

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

import config

logger = logging.getLogger("parcourse.db")


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


engine = create_async_engine(
    config.DATABASE_URL,
    echo=False,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_async_session():
    """Async generator yielding database sessions. Use: async for session in get_async_session(): ..."""
    async with async_session_factory() as session:
        yield session


# Additive migrations for databases created before these columns existed
_MIGRATIONS = [
    "ALTER TABLE tournaments ADD COLUMN is_handicapped BOOLEAN NOT NULL DEFAULT 0",
    "ALTER TABLE tournament_players ADD COLUMN is_dnf BOOLEAN NOT NULL DEFAULT 0",
    "ALTER TABLE tournament_players ADD COLUMN universal_player_id INTEGER REFERENCES universal_players(id)",
    "ALTER TABLE player_tournament_history ADD COLUMN total_scratches INTEGER DEFAULT 0",
    "ALTER TABLE player_tournament_history ADD COLUMN total_penalties INTEGER DEFAULT 0",
]


async def _run_migrations(conn) -> None:
    """Add new columns if they don't exist."""
    for sql in _MIGRATIONS:
        try:
            await conn.execute(text(sql))
        except DBAPIError:
            logger.debug("Migration skipped (already applied): %s", sql)


async def init_db() -> None:
    """Create all tables and run migrations."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await _run_migrations(conn)
