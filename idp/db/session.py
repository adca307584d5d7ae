"""
Database session management.

Provides the async engine and the session factory every repository
operation acquires its connection from.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from idp.core.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create the pooled async engine.

    Args:
        settings: Application settings

    Returns:
        AsyncEngine bound to the configured PostgreSQL database
    """
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,  # Log SQL queries in debug mode
        pool_pre_ping=True,   # Verify connections before using
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create the session factory used as connection provider.

    ``factory()`` scopes a read to one pooled connection; ``factory.begin()``
    additionally commits on success and rolls back on failure, re-raising the
    error unchanged.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
