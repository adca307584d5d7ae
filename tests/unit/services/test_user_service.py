"""Tests for the user service business rules."""

import asyncio
import datetime

import pytest

from idp.core.errors import (
    InvalidPageError,
    InvalidRefreshTokenError,
    LastActiveAdminError,
    UserLockedError,
    UserNotFoundError,
    UserSuspendedError,
)
from idp.services.user_service import UserService

NOW = datetime.datetime(2026, 10, 19, 12, 0, tzinfo=datetime.timezone.utc)


@pytest.fixture
def service(repository, settings):
    return UserService(repository, settings)


class TestListUsers:
    async def test_page_metadata(self, service, repository, make_user):
        for index in range(5):
            await repository.insert(make_user(index))

        result = await service.list_users(page=2, size=2)

        assert [u.id for u in result.data] == ["user-02", "user-03"]
        assert result.total_elements == 5
        assert result.total_pages == 3
        assert result.page == 2
        assert result.size == 2

    @pytest.mark.parametrize("page,size", [(0, 5), (1, 0), (1, 11), (-1, 5)])
    async def test_invalid_page(self, service, page, size):
        with pytest.raises(InvalidPageError):
            await service.list_users(page=page, size=size)

    async def test_response_serializes_camel_case(self, service, repository, make_user):
        await repository.insert(make_user(1))

        body = (await service.get_user("user-01")).model_dump(by_alias=True)

        assert body["fullName"] == "User 1"
        assert body["isEmailConfirmed"] is False
        assert "passwordHash" not in body
        assert "refreshTokenValue" not in body


class TestAdminGuard:
    async def test_cannot_revoke_last_admin(self, service, repository, make_user):
        await repository.insert(make_user(1, is_admin=True))

        with pytest.raises(LastActiveAdminError):
            await service.set_admin("user-01", False)

    async def test_revoke_with_second_admin(self, service, repository, make_user):
        await repository.insert(make_user(1, is_admin=True))
        await repository.insert(make_user(2, is_admin=True))

        user = await service.set_admin("user-02", False)
        assert user.is_admin is False

    async def test_cannot_suspend_last_admin(self, service, repository, make_user):
        await repository.insert(make_user(1, is_admin=True))

        with pytest.raises(LastActiveAdminError):
            await service.suspend_user("user-01", True)

    async def test_suspend_regular_user(self, service, repository, make_user):
        await repository.insert(make_user(1, is_admin=True))
        await repository.insert(make_user(2))

        user = await service.suspend_user("user-02", True)
        assert user.is_active is False

    async def test_cannot_delete_last_admin(self, service, repository, make_user):
        await repository.insert(make_user(1, is_admin=True))

        with pytest.raises(LastActiveAdminError):
            await service.delete_user("user-01")

    async def test_delete_missing_user(self, service):
        with pytest.raises(UserNotFoundError):
            await service.delete_user("missing")


class TestRefreshToken:
    async def test_valid_token(self, service, repository, make_user):
        expiry = NOW + datetime.timedelta(hours=1)
        await repository.insert(make_user(1, refresh_token_value="refresh-1", refresh_token_expiry=expiry))

        user = await service.find_by_refresh_token("refresh-1", now=NOW)
        assert user.id == "user-01"

    async def test_unknown_token(self, service):
        with pytest.raises(InvalidRefreshTokenError):
            await service.find_by_refresh_token("nope", now=NOW)

    async def test_expired_token(self, service, repository, make_user):
        expiry = NOW - datetime.timedelta(minutes=1)
        await repository.insert(make_user(1, refresh_token_value="refresh-1", refresh_token_expiry=expiry))

        with pytest.raises(InvalidRefreshTokenError):
            await service.find_by_refresh_token("refresh-1", now=NOW)

    async def test_suspended_account(self, service, repository, make_user):
        expiry = NOW + datetime.timedelta(hours=1)
        await repository.insert(make_user(
            1, refresh_token_value="refresh-1", refresh_token_expiry=expiry, is_active=False,
        ))

        with pytest.raises(UserSuspendedError):
            await service.find_by_refresh_token("refresh-1", now=NOW)


class TestLockout:
    async def test_failed_logins_lock_account(self, service, repository, make_user):
        await repository.insert(make_user(1))

        first = await service.record_failed_login("user-01", now=NOW)
        second = await service.record_failed_login("user-01", now=NOW)
        assert (first.failed_attempts, second.failed_attempts) == (1, 2)
        service.ensure_not_locked(second, now=NOW)

        locked = await service.record_failed_login("user-01", now=NOW)
        assert locked.failed_attempts == 0
        with pytest.raises(UserLockedError):
            service.ensure_not_locked(locked, now=NOW)

        # Lock expires after LOCKOUT_MINUTES
        service.ensure_not_locked(locked, now=NOW + datetime.timedelta(minutes=16))

    async def test_reset_failed_logins(self, service, repository, make_user):
        await repository.insert(make_user(1))
        for _ in range(3):
            await service.record_failed_login("user-01", now=NOW)

        user = await service.reset_failed_logins("user-01")

        assert user.failed_attempts == 0
        assert user.locked_until is None
        service.ensure_not_locked(user, now=NOW)

    async def test_concurrent_failed_logins_are_all_counted(self, service, repository, make_user):
        await repository.insert(make_user(1))

        await asyncio.gather(
            service.record_failed_login("user-01", now=NOW),
            service.record_failed_login("user-01", now=NOW),
        )

        assert (await repository.find_by_id("user-01")).failed_attempts == 2

    async def test_concurrent_failed_logins_reach_lock(self, service, repository, make_user):
        await repository.insert(make_user(1))

        await asyncio.gather(*[service.record_failed_login("user-01", now=NOW) for _ in range(3)])

        with pytest.raises(UserLockedError):
            service.ensure_not_locked(await repository.find_by_id("user-01"), now=NOW)
