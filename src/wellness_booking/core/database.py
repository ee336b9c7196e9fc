"""
Database configuration and async session management
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from wellness_booking.core.config import settings

# Using asyncpg driver for PostgreSQL
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,  # Log SQL queries in debug mode
    future=True,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for FastAPI to provide database sessions.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db():
    """
    Initialize database tables.
    Only for development - use migrations in production.
    """
    async with engine.begin() as conn:
        # Import all models to register them with Base
        from wellness_booking import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def atomic(db: AsyncSession):
    """
    Unit of work on ``db``: commit when the block exits cleanly,
    roll back and re-raise otherwise.

    Works whether or not the session has already autobegun a transaction
    (e.g. after an authorization read in a route handler).
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
