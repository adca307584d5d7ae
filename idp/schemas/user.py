"""
User schemas.

Pydantic models for repository input and console-facing output.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


# Repository input
class UserInsert(BaseModel):
    """Fields for a new user row. The caller supplies the identifier."""
    id: str = Field(..., min_length=1)
    full_name: str
    username: str
    email: EmailStr
    password_hash: str
    refresh_token_value: Optional[str] = None
    refresh_token_expiry: Optional[datetime] = None
    reset_password_token: Optional[str] = None
    email_confirmation_token: Optional[str] = None
    is_email_confirmed: bool = False
    is_admin: bool = False
    is_active: bool = True
    picture: Optional[str] = None
    strategy: str = "local"


class UserUpdate(BaseModel):
    """
    Partial update of a user row.

    Only fields explicitly set on the instance are written. An explicit
    ``None`` clears a nullable column and is rejected for the NOT NULL ones.
    """
    id: str
    full_name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    password_hash: Optional[str] = None
    refresh_token_value: Optional[str] = None
    refresh_token_expiry: Optional[datetime] = None
    reset_password_token: Optional[str] = None
    email_confirmation_token: Optional[str] = None
    is_email_confirmed: Optional[bool] = None
    is_admin: Optional[bool] = None
    is_active: Optional[bool] = None
    email_update_token: Optional[str] = None
    email_update_value: Optional[EmailStr] = None
    picture: Optional[str] = None
    failed_attempts: Optional[int] = Field(None, ge=0)
    locked_until: Optional[datetime] = None

    @field_validator(
        "full_name", "username", "email", "password_hash",
        "is_email_confirmed", "is_admin", "is_active", "failed_attempts",
    )
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("column cannot be cleared")
        return value

    def changes(self) -> dict:
        """Supplied fields, without the identifier."""
        return self.model_dump(exclude_unset=True, exclude={"id"})


# Response schemas
class UserResponse(BaseModel):
    """User data for API responses (no credentials or tokens), camelCase on the wire."""
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    full_name: str
    username: str
    email: str
    picture: Optional[str] = None
    is_email_confirmed: bool
    is_admin: bool
    is_active: bool
    strategy: str
    email_update_value: Optional[str] = None
    create_time: datetime
    update_time: Optional[datetime] = None


class UserList(BaseModel):
    """One page of users."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    data: list[UserResponse]
    total_elements: int
    total_pages: int
    page: int
    size: int
