"""Database repositories."""

from idp.db.repositories.user import UserRepository

__all__ = [
    "UserRepository",
]
