"""
User repository.

Handles database operations for the User model. Every operation acquires
its own session from the injected factory; lookups raise
``UserNotFoundError`` instead of returning ``None``.
"""

from __future__ import annotations

import datetime
from typing import Any

import structlog
from sqlalchemy import delete, func, insert, update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from idp.core.errors import InternalServerError, LastActiveAdminError, UserNotFoundError
from idp.models.user import User
from idp.schemas.user import UserInsert, UserUpdate

logger = structlog.get_logger(__name__)

# Columns written back by update()
MUTABLE_COLUMNS = (
    "full_name",
    "username",
    "email",
    "password_hash",
    "refresh_token_value",
    "refresh_token_expiry",
    "reset_password_token",
    "email_confirmation_token",
    "is_email_confirmed",
    "is_admin",
    "is_active",
    "email_update_token",
    "email_update_value",
    "picture",
    "failed_attempts",
    "locked_until",
)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class UserRepository:
    """Repository for User database operations."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]):
        """
        Initialize repository with a session factory.

        Args:
            sessions: Factory producing one pooled session per operation
        """
        self.sessions = sessions

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def find_by_id(self, id: str) -> User:
        return await self._find_one(User.id == id)

    async def find_by_username(self, username: str) -> User:
        return await self._find_one(User.username == username)

    async def find_by_email(self, email: str) -> User:
        return await self._find_one(User.email == email)

    async def find_by_refresh_token_value(self, refresh_token_value: str) -> User:
        return await self._find_one(User.refresh_token_value == refresh_token_value)

    async def find_by_reset_password_token(self, reset_password_token: str) -> User:
        return await self._find_one(User.reset_password_token == reset_password_token)

    async def find_by_email_confirmation_token(self, email_confirmation_token: str) -> User:
        return await self._find_one(User.email_confirmation_token == email_confirmation_token)

    async def find_by_email_update_token(self, email_update_token: str) -> User:
        return await self._find_one(User.email_update_token == email_update_token)

    async def list(self, page: int, size: int) -> list[User]:
        """
        Get one page of users ordered by creation time.

        Args:
            page: 1-based page number
            size: Maximum number of users to return, validated by the caller

        Returns:
            List of users
        """
        statement = (
            select(User)
            .order_by(User.create_time, User.id)
            .offset((page - 1) * size)
            .limit(size)
        )
        async with self.sessions() as session:
            return list((await session.exec(statement)).all())

    async def find_many(self, ids: list[str]) -> list[User]:
        """Get the users matching ``ids``; unknown ids are skipped."""
        if not ids:
            return []
        statement = select(User).where(User.id.in_(ids)).order_by(User.create_time, User.id)
        async with self.sessions() as session:
            return list((await session.exec(statement)).all())

    async def get_count(self) -> int:
        statement = select(func.count()).select_from(User)
        async with self.sessions() as session:
            return int((await session.exec(statement)).one())

    async def is_username_available(self, username: str) -> bool:
        statement = select(func.count()).select_from(User).where(User.username == username)
        async with self.sessions() as session:
            return (await session.exec(statement)).one() == 0

    async def enough_active_admins(self) -> bool:
        """
        Check whether more than one active admin exists.

        Not fenced against concurrent demotions; use ``guarded=True`` on the
        mutation for an atomic check.
        """
        statement = (
            select(func.count())
            .select_from(User)
            .where(User.is_admin.is_(True), User.is_active.is_(True))
        )
        async with self.sessions() as session:
            return (await session.exec(statement)).one() > 1

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def insert(self, data: UserInsert) -> User:
        """
        Create a new user.

        Args:
            data: Fields of the new row, including the identifier

        Returns:
            The row as stored, read back after the insert

        Raises:
            InternalServerError: If the insert did not affect exactly one row
        """
        values = data.model_dump()
        values["create_time"] = _utcnow()
        async with self.sessions.begin() as session:
            result = await session.exec(insert(User.__table__).values(**values))
            if result.rowcount != 1:
                raise InternalServerError()
        logger.debug("user_inserted", user_id=data.id)
        return await self.find_by_id(data.id)

    async def update(self, data: UserUpdate) -> User:
        """
        Update the supplied fields of a user, keeping the others.

        The current row is read under a row lock and written back in the
        same transaction.

        Raises:
            UserNotFoundError: If the user does not exist
            InternalServerError: If the write affected no row
        """
        async with self.sessions.begin() as session:
            statement = select(User).where(User.id == data.id).with_for_update()
            entity = (await session.exec(statement)).first()
            if entity is None:
                raise UserNotFoundError()
            values: dict[str, Any] = {column: getattr(entity, column) for column in MUTABLE_COLUMNS}
            values.update(data.changes())
            values["update_time"] = _utcnow()
            result = await session.exec(
                update(User).where(User.id == data.id).values(**values)
            )
            if result.rowcount == 0:
                raise InternalServerError()
        logger.debug("user_updated", user_id=data.id, fields=sorted(data.changes()))
        return await self.find_by_id(data.id)

    async def delete(self, id: str, *, guarded: bool = False) -> None:
        """
        Hard-delete a user. Deleting a missing user is a no-op.

        Args:
            id: User ID
            guarded: Refuse to delete the only active admin

        Raises:
            LastActiveAdminError: If guarded and the user is the only active admin
        """
        async with self.sessions.begin() as session:
            if guarded:
                await self._keep_an_active_admin(session, id)
            await session.exec(delete(User).where(User.id == id))
        logger.debug("user_deleted", user_id=id)

    async def suspend(self, id: str, suspend: bool, *, guarded: bool = False) -> None:
        """
        Suspend or reactivate a user. Both refresh token fields are cleared.

        Raises:
            LastActiveAdminError: If guarded, suspending and the user is the only active admin
        """
        async with self.sessions.begin() as session:
            if guarded and suspend:
                await self._keep_an_active_admin(session, id)
            await session.exec(
                update(User)
                .where(User.id == id)
                .values(
                    is_active=not suspend,
                    refresh_token_value=None,
                    refresh_token_expiry=None,
                    update_time=_utcnow(),
                )
            )
        logger.debug("user_suspended" if suspend else "user_unsuspended", user_id=id)

    async def make_admin(self, id: str, make_admin: bool, *, guarded: bool = False) -> None:
        """
        Grant or revoke the admin flag.

        Raises:
            LastActiveAdminError: If guarded, revoking and the user is the only active admin
        """
        async with self.sessions.begin() as session:
            if guarded and not make_admin:
                await self._keep_an_active_admin(session, id)
            await session.exec(
                update(User)
                .where(User.id == id)
                .values(is_admin=make_admin, update_time=_utcnow())
            )
        logger.debug("user_admin_changed", user_id=id, is_admin=make_admin)

    async def register_failed_attempt(
        self, id: str, max_attempts: int, locked_until: datetime.datetime,
    ) -> User:
        """
        Count a failed login and lock the user once ``max_attempts`` is reached.

        The increment and the lock decision are evaluated by the database in
        one transaction, so concurrent failures are all counted. Setting the
        lock restarts the counter from zero.

        Args:
            id: User ID
            max_attempts: Failed attempts that trigger the lock
            locked_until: Lock expiry applied when the limit is reached

        Raises:
            UserNotFoundError: If the user does not exist
        """
        async with self.sessions.begin() as session:
            result = await session.exec(
                update(User)
                .where(User.id == id)
                .values(failed_attempts=User.failed_attempts + 1, update_time=_utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise UserNotFoundError()
            result = await session.exec(
                update(User)
                .where(User.id == id, User.failed_attempts >= max_attempts)
                .values(failed_attempts=0, locked_until=locked_until)
                .execution_options(synchronize_session=False)
            )
            locked = result.rowcount > 0
        if locked:
            logger.warning("user_locked", user_id=id, locked_until=locked_until.isoformat())
        return await self.find_by_id(id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _find_one(self, *criteria: Any) -> User:
        async with self.sessions() as session:
            user = (await session.exec(select(User).where(*criteria))).first()
        if user is None:
            raise UserNotFoundError()
        return user

    async def _keep_an_active_admin(self, session: AsyncSession, id: str) -> None:
        """Lock the active admin rows and refuse if ``id`` is the last of them."""
        statement = (
            select(User.id)
            .where(User.is_admin.is_(True), User.is_active.is_(True))
            .with_for_update()
        )
        admin_ids = (await session.exec(statement)).all()
        if id in admin_ids and len(admin_ids) <= 1:
            logger.warning("last_active_admin_protected", user_id=id)
            raise LastActiveAdminError()
