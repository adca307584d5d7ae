"""SQLModel database models."""

from idp.models.user import User

__all__ = [
    "User",
]
