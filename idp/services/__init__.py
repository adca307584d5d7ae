"""Business logic services."""

from idp.services.user_service import UserService

__all__ = [
    "UserService",
]
