"""WriterSession model — a draft workspace owned by one user."""

import uuid
from datetime import datetime

import pydantic
from sqlmodel import Field, SQLModel

from mysre.models.base import CamelModel, TimestampMixin, new_uuid, utcnow
from mysre.models.user import UserSummary

DEFAULT_COVER_COLOR = "#4c6ef5"


class WriterSession(TimestampMixin, SQLModel, table=True):
    __tablename__ = "writer_sessions"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    title: str = Field(max_length=255, nullable=False)
    description: str | None = Field(default=None, max_length=2000)
    cover_color: str = Field(default=DEFAULT_COVER_COLOR, max_length=20)
    last_activity: datetime = Field(default_factory=utcnow, nullable=False, index=True)


# ── Wire schemas ─────────────────────────────────────────────

_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class WriterSessionCreate(CamelModel):
    title: str = pydantic.Field(min_length=1, max_length=255)
    description: str | None = pydantic.Field(default=None, max_length=2000)
    user_id: uuid.UUID
    cover_color: str = pydantic.Field(default=DEFAULT_COVER_COLOR, pattern=_COLOR_PATTERN)


class WriterSessionUpdate(CamelModel):
    title: str | None = pydantic.Field(default=None, min_length=1, max_length=255)
    description: str | None = pydantic.Field(default=None, max_length=2000)
    cover_color: str | None = pydantic.Field(default=None, pattern=_COLOR_PATTERN)
    last_activity: datetime | None = None


class WriterSessionRead(CamelModel):
    id: uuid.UUID
    title: str
    description: str | None
    user_id: uuid.UUID
    cover_color: str
    last_activity: datetime
    created_at: datetime
    updated_at: datetime
    user: UserSummary | None = None


class WriterSessionStats(CamelModel):
    total_sessions: int
    recent_sessions: int
    active_sessions: int
