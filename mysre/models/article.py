"""Article model — an uploaded paper with bibliographic metadata."""

import uuid
from datetime import datetime

import pydantic
from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from mysre.models.base import CamelModel, TimestampMixin, new_uuid
from mysre.models.user import UserSummary


class Article(TimestampMixin, SQLModel, table=True):
    __tablename__ = "articles"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    title: str = Field(max_length=500, nullable=False, index=True)

    # Object-storage path inside the "uploads" bucket
    file_path: str = Field(max_length=1024, nullable=False)

    user_id: uuid.UUID | None = Field(default=None, foreign_key="users.id", index=True)
    session_id: uuid.UUID | None = Field(default=None, foreign_key="writer_sessions.id", index=True)

    abstract: str | None = Field(default=None, sa_column=Column(Text))
    author: str | None = Field(default=None, max_length=500)
    doi: str | None = Field(default=None, max_length=255)
    keywords: str | None = Field(default=None, max_length=1000)
    year: int | None = Field(default=None, index=True)


# ── Wire schemas (camelCase on the wire) ─────────────────────

class ArticleCreate(CamelModel):
    title: str = pydantic.Field(min_length=1, max_length=500)
    file_path: str = pydantic.Field(min_length=1, max_length=1024)
    user_id: uuid.UUID | None = None
    session_id: uuid.UUID | None = None
    abstract: str | None = None
    author: str | None = pydantic.Field(default=None, max_length=500)
    doi: str | None = pydantic.Field(default=None, max_length=255)
    keywords: str | None = pydantic.Field(default=None, max_length=1000)
    year: int | None = pydantic.Field(default=None, ge=1000, le=9999)


class ArticleUpdate(CamelModel):
    id: uuid.UUID
    title: str | None = pydantic.Field(default=None, min_length=1, max_length=500)
    file_path: str | None = pydantic.Field(default=None, min_length=1, max_length=1024)
    user_id: uuid.UUID | None = None
    session_id: uuid.UUID | None = None
    abstract: str | None = None
    author: str | None = pydantic.Field(default=None, max_length=500)
    doi: str | None = pydantic.Field(default=None, max_length=255)
    keywords: str | None = pydantic.Field(default=None, max_length=1000)
    year: int | None = pydantic.Field(default=None, ge=1000, le=9999)

    @pydantic.field_validator("title", "file_path")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class ArticleRead(CamelModel):
    id: uuid.UUID
    title: str
    file_path: str
    user_id: uuid.UUID | None
    session_id: uuid.UUID | None
    abstract: str | None
    author: str | None
    doi: str | None
    keywords: str | None
    year: int | None
    created_at: datetime
    updated_at: datetime
    user: UserSummary | None = None


class ArticleList(CamelModel):
    articles: list[ArticleRead]
    total: int
    page: int
    limit: int
    total_pages: int


class ArticleResponse(CamelModel):
    message: str | None = None
    article: ArticleRead


class UploadResult(CamelModel):
    path: str
    bucket: str
    size: int
