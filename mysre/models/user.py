"""User model — identity plus the billing fields owned by the token ledger."""

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import EmailStr, field_validator
from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from mysre.core.pricing import TIER_MONTHLY_LIMITS, Tier
from mysre.models.base import TimestampMixin, new_uuid


class UserRole(StrEnum):
    ADMIN = "ADMIN"
    USER = "USER"


class UserGroup(StrEnum):
    A = "A"
    B = "B"


class User(TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("token_balance >= 0", name="ck_users_token_balance_non_negative"),
        CheckConstraint("monthly_token_limit > 0", name="ck_users_monthly_limit_positive"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    name: str = Field(max_length=255, nullable=False)
    email: str = Field(max_length=320, nullable=False, unique=True, index=True)
    password_hash: str = Field(nullable=False)
    role: UserRole = Field(default=UserRole.USER, index=True)
    group: UserGroup | None = Field(default=None)
    nim: str | None = Field(default=None, max_length=50, index=True)  # student number
    avatar_url: str | None = Field(default=None, max_length=2048)
    is_email_verified: bool = Field(default=False)
    is_phone_verified: bool = Field(default=False)

    # Billing fields, written only by the token ledger
    tier: Tier = Field(default=Tier.BASIC)
    token_balance: int = Field(default=0, nullable=False)
    monthly_token_limit: int = Field(default=TIER_MONTHLY_LIMITS[Tier.BASIC], nullable=False)


# ── Pydantic schemas ─────────────────────────────────────────

class UserCreate(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    role: UserRole = UserRole.USER
    group: UserGroup | None = None
    nim: str | None = Field(default=None, max_length=50)
    avatar_url: str | None = None
    tier: Tier = Tier.BASIC
    token_balance: int = Field(default=0, ge=0)


class UserUpdate(SQLModel):
    id: uuid.UUID
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=8, max_length=128)
    role: UserRole | None = None
    group: UserGroup | None = None
    nim: str | None = Field(default=None, max_length=50)
    avatar_url: str | None = None
    is_email_verified: bool | None = None
    is_phone_verified: bool | None = None

    @field_validator("name", "email", "role", "is_email_verified", "is_phone_verified")
    @classmethod
    def _not_null(cls, value):
        # Omit a field to keep it; these columns cannot be cleared
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class UserRead(SQLModel):
    """Never includes the password hash."""
    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    group: UserGroup | None
    nim: str | None
    avatar_url: str | None
    is_email_verified: bool
    is_phone_verified: bool
    tier: Tier
    token_balance: int
    monthly_token_limit: int
    created_at: datetime
    updated_at: datetime


class UserSummary(SQLModel):
    """Compact owner info embedded in article / writer-session payloads."""
    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    group: UserGroup | None = None
    nim: str | None = None
    avatar_url: str | None = None


class UserBillingRead(SQLModel):
    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    tier: Tier
    token_balance: int
    monthly_token_limit: int
