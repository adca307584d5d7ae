"""
User database model.

Defines the "user" table holding account state for the identity provider.
"""

import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """
    User account.

    The identifier is supplied by the caller, never generated by the store.
    Token columns are matched exactly by the token lookups.
    """
    __tablename__ = "user"

    id: str = Field(primary_key=True)
    full_name: str = Field(nullable=False)
    username: str = Field(unique=True, index=True, nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)
    password_hash: str = Field(nullable=False)

    # Tokens
    refresh_token_value: Optional[str] = Field(default=None, index=True)
    refresh_token_expiry: Optional[datetime.datetime] = Field(default=None, sa_type=DateTime(timezone=True))
    reset_password_token: Optional[str] = Field(default=None, index=True)
    email_confirmation_token: Optional[str] = Field(default=None, index=True)
    email_update_token: Optional[str] = Field(default=None, index=True)
    email_update_value: Optional[str] = Field(default=None)

    # Flags
    is_email_confirmed: bool = Field(default=False)
    is_admin: bool = Field(default=False)
    is_active: bool = Field(default=True)

    # Profile
    picture: Optional[str] = Field(default=None)
    strategy: str = Field(default="local")

    # Login lockout
    failed_attempts: int = Field(default=0)
    locked_until: Optional[datetime.datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    # Timestamps
    create_time: datetime.datetime = Field(sa_type=DateTime(timezone=True), nullable=False)
    update_time: Optional[datetime.datetime] = Field(default=None, sa_type=DateTime(timezone=True))
