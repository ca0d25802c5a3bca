"""Assignment models — weekly coursework and the students' submissions."""

import uuid
from datetime import datetime
from enum import StrEnum

import pydantic
from sqlalchemy import JSON, Text, UniqueConstraint
from sqlmodel import Column, Field, SQLModel

from mysre.models.base import CamelModel, TimestampMixin, new_uuid, utcnow
from mysre.models.user import UserGroup, UserSummary


class SubmissionStatus(StrEnum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    GRADED = "graded"


class Assignment(TimestampMixin, SQLModel, table=True):
    __tablename__ = "assignments"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    title: str = Field(max_length=255, nullable=False)
    description: str = Field(default="", sa_column=Column(Text, nullable=False))
    week_number: int = Field(nullable=False, index=True)

    # Short numeric code the students type in to submit
    assignment_code: str = Field(max_length=10, nullable=False, unique=True, index=True)

    file_url: str | None = Field(default=None, max_length=2048)
    file_name: str | None = Field(default=None, max_length=255)
    due_date: datetime | None = Field(default=None)
    is_active: bool = Field(default=True, index=True)
    target_classes: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    # NULL once the creating admin is deleted
    created_by: uuid.UUID | None = Field(default=None, foreign_key="users.id", index=True)


class AssignmentSubmission(TimestampMixin, SQLModel, table=True):
    __tablename__ = "assignment_submissions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_assignment_submissions_student"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    assignment_id: uuid.UUID = Field(foreign_key="assignments.id", nullable=False, index=True)
    student_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    assignment_code_input: str = Field(max_length=10, nullable=False)
    file_url: str | None = Field(default=None, max_length=2048)
    file_name: str | None = Field(default=None, max_length=255)
    submission_text: str | None = Field(default=None, sa_column=Column(Text))

    status: SubmissionStatus = Field(default=SubmissionStatus.SUBMITTED, index=True)
    grade: int | None = Field(default=None)
    feedback: str | None = Field(default=None, sa_column=Column(Text))
    submitted_at: datetime = Field(default_factory=utcnow, nullable=False, index=True)
    graded_at: datetime | None = Field(default=None)


# ── Wire schemas ─────────────────────────────────────────────

_CODE_PATTERN = r"^[0-9]{3,4}$"


def _dedupe_classes(value: list[UserGroup]) -> list[UserGroup]:
    return sorted(set(value))


class AssignmentCreate(CamelModel):
    title: str = pydantic.Field(min_length=1, max_length=255)
    description: str = ""
    week_number: int = pydantic.Field(ge=1)
    assignment_code: str = pydantic.Field(pattern=_CODE_PATTERN)
    file_url: str | None = None
    file_name: str | None = pydantic.Field(default=None, max_length=255)
    due_date: datetime | None = None
    is_active: bool = True
    target_classes: list[UserGroup] = pydantic.Field(min_length=1)

    @pydantic.field_validator("target_classes")
    @classmethod
    def _classes(cls, value):
        return _dedupe_classes(value)


class AssignmentUpdate(CamelModel):
    title: str | None = pydantic.Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    week_number: int | None = pydantic.Field(default=None, ge=1)
    assignment_code: str | None = pydantic.Field(default=None, pattern=_CODE_PATTERN)
    file_url: str | None = None
    file_name: str | None = pydantic.Field(default=None, max_length=255)
    due_date: datetime | None = None
    is_active: bool | None = None
    target_classes: list[UserGroup] | None = pydantic.Field(default=None, min_length=1)

    @pydantic.field_validator(
        "title", "description", "week_number", "assignment_code", "is_active", "target_classes",
    )
    @classmethod
    def _not_null(cls, value):
        # Omit a field to keep it; only the file and due date can be cleared
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    @pydantic.field_validator("target_classes")
    @classmethod
    def _classes(cls, value):
        return _dedupe_classes(value)


class AssignmentRead(CamelModel):
    id: uuid.UUID
    title: str
    description: str
    week_number: int
    assignment_code: str
    file_url: str | None
    file_name: str | None
    due_date: datetime | None
    is_active: bool
    target_classes: list[UserGroup]
    created_by: uuid.UUID | None
    created_at: datetime
    updated_at: datetime
    creator: UserSummary | None = None


class SubmissionCreate(CamelModel):
    assignment_code_input: str = pydantic.Field(min_length=1, max_length=10)
    file_url: str | None = None
    file_name: str | None = pydantic.Field(default=None, max_length=255)
    submission_text: str | None = None


class SubmissionUpdate(CamelModel):
    assignment_code_input: str | None = pydantic.Field(default=None, min_length=1, max_length=10)
    file_url: str | None = None
    file_name: str | None = pydantic.Field(default=None, max_length=255)
    submission_text: str | None = None


class SubmissionGrade(CamelModel):
    grade: int = pydantic.Field(ge=0, le=100)
    feedback: str | None = None


class SubmissionRead(CamelModel):
    id: uuid.UUID
    assignment_id: uuid.UUID
    student_id: uuid.UUID
    assignment_code_input: str
    file_url: str | None
    file_name: str | None
    submission_text: str | None
    status: SubmissionStatus
    grade: int | None
    feedback: str | None
    submitted_at: datetime
    graded_at: datetime | None
    created_at: datetime
    updated_at: datetime
    assignment_title: str | None = None
    student: UserSummary | None = None


class AssignmentDetail(AssignmentRead):
    submissions: list[SubmissionRead] = []


class AssignmentStats(CamelModel):
    total_assignments: int
    active_assignments: int
    total_submissions: int
    pending_submissions: int
    graded_submissions: int
    class_a_assignments: int
    class_b_assignments: int
    both_classes_assignments: int
