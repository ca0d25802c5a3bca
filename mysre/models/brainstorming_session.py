"""BrainstormingSession model — a saved idea-graph workspace."""

import uuid
from datetime import datetime
from typing import Any

import pydantic
from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel

from mysre.models.base import CamelModel, TimestampMixin, new_uuid, utcnow
from mysre.models.user import UserSummary
from mysre.models.writer_session import DEFAULT_COVER_COLOR

_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class BrainstormingSession(TimestampMixin, SQLModel, table=True):
    __tablename__ = "brainstorming_sessions"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    title: str = Field(max_length=255, nullable=False)
    description: str | None = Field(default=None, max_length=2000)
    cover_color: str = Field(default=DEFAULT_COVER_COLOR, max_length=20)
    last_activity: datetime = Field(default_factory=utcnow, nullable=False, index=True)

    # Graph view state; article ids are stored as strings
    selected_filter_articles: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False),
    )
    last_selected_node_id: str | None = Field(default=None, max_length=255)
    last_selected_edge_id: str | None = Field(default=None, max_length=255)
    graph_filters: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))


class BrainstormingSessionCreate(CamelModel):
    title: str = pydantic.Field(min_length=1, max_length=255)
    description: str | None = pydantic.Field(default=None, max_length=2000)
    user_id: uuid.UUID
    cover_color: str = pydantic.Field(default=DEFAULT_COVER_COLOR, pattern=_COLOR_PATTERN)
    selected_filter_articles: list[uuid.UUID] = []
    last_selected_node_id: str | None = pydantic.Field(default=None, max_length=255)
    last_selected_edge_id: str | None = pydantic.Field(default=None, max_length=255)
    graph_filters: dict[str, Any] | None = None


class BrainstormingSessionUpdate(CamelModel):
    """Unlike a writer session, the graph selection fields can be cleared with null."""

    title: str | None = pydantic.Field(default=None, min_length=1, max_length=255)
    description: str | None = pydantic.Field(default=None, max_length=2000)
    cover_color: str | None = pydantic.Field(default=None, pattern=_COLOR_PATTERN)
    selected_filter_articles: list[uuid.UUID] | None = None
    last_selected_node_id: str | None = pydantic.Field(default=None, max_length=255)
    last_selected_edge_id: str | None = pydantic.Field(default=None, max_length=255)
    graph_filters: dict[str, Any] | None = None
    last_activity: datetime | None = None

    @pydantic.field_validator("title", "cover_color", "selected_filter_articles", "last_activity")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class BrainstormingSessionRead(CamelModel):
    id: uuid.UUID
    title: str
    description: str | None
    user_id: uuid.UUID
    cover_color: str
    last_activity: datetime
    selected_filter_articles: list[uuid.UUID]
    last_selected_node_id: str | None
    last_selected_edge_id: str | None
    graph_filters: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime
    user: UserSummary | None = None
