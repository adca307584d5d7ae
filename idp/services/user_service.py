"""
User service.

Business rules layered on the user repository: paging bounds, the
last-active-admin guard, refresh token validity and login lockout.
"""

import datetime
import math
from typing import Optional

import structlog

from idp.core.config import Settings
from idp.core.errors import (
    InvalidPageError,
    InvalidRefreshTokenError,
    UserLockedError,
    UserNotFoundError,
    UserSuspendedError,
)
from idp.db.repositories.user import UserRepository
from idp.models.user import User
from idp.schemas.user import UserList, UserResponse, UserUpdate

logger = structlog.get_logger(__name__)


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    """Treat naive timestamps read back from the database as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


class UserService:
    """Service for user-related business logic."""

    def __init__(self, repository: UserRepository, settings: Settings):
        """
        Initialize service.

        Args:
            repository: The single user repository instance
            settings: Application settings
        """
        self.repository = repository
        self.settings = settings

    # ------------------------------------------------------------------
    # Console
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> UserResponse:
        user = await self.repository.find_by_id(user_id)
        return UserResponse.model_validate(user)

    async def list_users(self, page: int, size: int) -> UserList:
        """
        Get one page of users.

        Raises:
            InvalidPageError: If page < 1 or size is outside 1..MAX_PAGE_SIZE
        """
        if page < 1 or size < 1 or size > self.settings.MAX_PAGE_SIZE:
            raise InvalidPageError()
        users = await self.repository.list(page, size)
        total = await self.repository.get_count()
        return UserList(
            data=[UserResponse.model_validate(user) for user in users],
            total_elements=total,
            total_pages=math.ceil(total / size),
            page=page,
            size=size,
        )

    async def set_admin(self, user_id: str, make_admin: bool) -> UserResponse:
        await self.repository.find_by_id(user_id)
        await self.repository.make_admin(user_id, make_admin, guarded=True)
        logger.info("admin_flag_changed", user_id=user_id, is_admin=make_admin)
        return await self.get_user(user_id)

    async def suspend_user(self, user_id: str, suspend: bool) -> UserResponse:
        await self.repository.find_by_id(user_id)
        await self.repository.suspend(user_id, suspend, guarded=True)
        logger.info("user_suspension_changed", user_id=user_id, suspended=suspend)
        return await self.get_user(user_id)

    async def delete_user(self, user_id: str) -> None:
        await self.repository.find_by_id(user_id)
        await self.repository.delete(user_id, guarded=True)
        logger.info("user_deleted", user_id=user_id)

    # ------------------------------------------------------------------
    # Tokens and lockout
    # ------------------------------------------------------------------

    async def find_by_refresh_token(self, value: str, now: Optional[datetime.datetime] = None) -> User:
        """
        Resolve a refresh token to its user, checking expiry and account state.

        Raises:
            InvalidRefreshTokenError: If the token is unknown or expired
            UserSuspendedError: If the account is suspended
        """
        now = now or datetime.datetime.now(datetime.timezone.utc)
        try:
            user = await self.repository.find_by_refresh_token_value(value)
        except UserNotFoundError as exc:
            raise InvalidRefreshTokenError() from exc
        if user.refresh_token_expiry is None or _as_utc(user.refresh_token_expiry) <= now:
            raise InvalidRefreshTokenError()
        if not user.is_active:
            raise UserSuspendedError()
        return user

    def ensure_not_locked(self, user: User, now: Optional[datetime.datetime] = None) -> None:
        now = now or datetime.datetime.now(datetime.timezone.utc)
        if user.locked_until is not None and _as_utc(user.locked_until) > now:
            raise UserLockedError()

    async def record_failed_login(self, user_id: str, now: Optional[datetime.datetime] = None) -> User:
        """
        Count a failed login; lock the account once the limit is reached.

        The counter restarts from zero when the lock is set.
        """
        now = now or datetime.datetime.now(datetime.timezone.utc)
        return await self.repository.register_failed_attempt(
            user_id,
            max_attempts=self.settings.MAX_FAILED_LOGIN_ATTEMPTS,
            locked_until=now + datetime.timedelta(minutes=self.settings.LOCKOUT_MINUTES),
        )

    async def reset_failed_logins(self, user_id: str) -> User:
        return await self.repository.update(
            UserUpdate(id=user_id, failed_attempts=0, locked_until=None)
        )
