"""
Database Layer - Async SQLAlchemy engine + session factory.
"""
import logging
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from app import config

logger = logging.getLogger("solar-epc-db")


def normalise_database_url(raw_url: str) -> str:
    """Force an async driver onto plain postgres:// URLs (Heroku/Railway style)."""
    url = raw_url
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


DATABASE_URL = normalise_database_url(config.DATABASE_URL)


class Base(DeclarativeBase):
    pass


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"echo": False}
    return {
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
        "echo": False,
        "pool_timeout": 5,
    }


engine = create_async_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db():
    """Create tables when DB_CREATE_ALL is set; Alembic owns the schema otherwise."""
    if not config.DB_CREATE_ALL:
        logger.info("DB_CREATE_ALL not set — skipping create_all()")
        return
    from app.models import orm_models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized.")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
