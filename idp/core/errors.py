"""
Application errors.

Every error carries a stable code and the HTTP status the API layer answers with.
Driver and connectivity errors are not wrapped: they propagate as raised.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base class for all application errors."""

    code: str = "internal_server_error"
    message: str = "Internal server error."
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class UserNotFoundError(AppError):
    """A lookup matched zero rows."""
    code = "user_not_found"
    message = "User not found."
    status_code = status.HTTP_404_NOT_FOUND


class InternalServerError(AppError):
    """A write affected an unexpected number of rows."""


class LastActiveAdminError(AppError):
    code = "last_active_admin"
    message = "The operation would leave no active admin."
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidPageError(AppError):
    code = "invalid_page"
    message = "Invalid page or page size."
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidRefreshTokenError(AppError):
    code = "invalid_refresh_token"
    message = "Invalid or expired refresh token."
    status_code = status.HTTP_401_UNAUTHORIZED


class UserSuspendedError(AppError):
    code = "user_suspended"
    message = "User is suspended."
    status_code = status.HTTP_403_FORBIDDEN


class UserLockedError(AppError):
    code = "user_locked"
    message = "User is temporarily locked after too many failed login attempts."
    status_code = status.HTTP_423_LOCKED


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as a JSON error body."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "path": request.url.path,
            }
        },
    )
