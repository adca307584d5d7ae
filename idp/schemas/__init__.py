"""Pydantic schemas for repository input and API output."""

from idp.schemas.user import UserInsert, UserList, UserResponse, UserUpdate

__all__ = [
    "UserInsert",
    "UserList",
    "UserResponse",
    "UserUpdate",
]
