"""AnalyticsEvent model — lightweight record of a user interaction."""

import uuid
from datetime import datetime

import pydantic
from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from mysre.models.base import CamelModel, TimestampMixin, new_uuid


class AnalyticsEvent(TimestampMixin, SQLModel, table=True):
    __tablename__ = "analytics_events"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    # e.g. "chat_query", "node_click", "draft_saved"
    action: str = Field(max_length=100, nullable=False, index=True)
    document: str | None = Field(default=None, max_length=500)
    metadata_json: str = Field(default="{}", sa_column=Column(Text, nullable=False, server_default="{}"))


# ── Wire schemas ─────────────────────────────────────────────

class AnalyticsEventCreate(CamelModel):
    action: str = pydantic.Field(min_length=1, max_length=100)
    user_id: uuid.UUID
    document: str | None = pydantic.Field(default=None, max_length=500)
    metadata: dict = pydantic.Field(default_factory=dict)


class AnalyticsEventRead(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    action: str
    document: str | None
    metadata: dict
    created_at: datetime


class ActionCount(CamelModel):
    action: str
    count: int


class DailyActivity(CamelModel):
    date: str
    count: int


class HourlyActivity(CamelModel):
    hour: int
    count: int


class UserActivitySummary(CamelModel):
    user_id: uuid.UUID
    days: int
    total_events: int
    by_action: list[ActionCount]
    daily: list[DailyActivity]
    hourly: list[HourlyActivity]
    engagement_level: str
