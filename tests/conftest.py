"""Shared fixtures: an in-memory database with the user table."""

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from idp.core.config import Settings
from idp.db.repositories.user import UserRepository
from idp.db.session import create_session_factory
from idp.models.user import User  # noqa: F401
from idp.schemas.user import UserInsert


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_PASSWORD="secret",
        MAX_PAGE_SIZE=10,
        MAX_FAILED_LOGIN_ATTEMPTS=3,
        LOCKOUT_MINUTES=15,
    )


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def repository(engine) -> UserRepository:
    return UserRepository(create_session_factory(engine))


def _make_user(index: int, **overrides) -> UserInsert:
    """Build insert data for a distinct user."""
    fields = {
        "id": f"user-{index:02d}",
        "full_name": f"User {index}",
        "username": f"user{index}",
        "email": f"user{index}@example.com",
        "password_hash": f"hash-{index}",
    }
    fields.update(overrides)
    return UserInsert(**fields)


@pytest.fixture
def make_user():
    return _make_user
