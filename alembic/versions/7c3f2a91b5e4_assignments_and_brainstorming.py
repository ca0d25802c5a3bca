"""assignments, submissions and brainstorming sessions

Revision ID: 7c3f2a91b5e4
Revises: 4e1a7b9c2d10
Create Date: 2026-10-18 15:40:02.518730

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '7c3f2a91b5e4'
down_revision: str | Sequence[str] | None = '4e1a7b9c2d10'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

submission_status_enum = sa.Enum("PENDING", "SUBMITTED", "GRADED", name="submissionstatus")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "assignments",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("assignment_code", sa.String(10), nullable=False),
        sa.Column("file_url", sa.String(2048), nullable=True),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("target_classes", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
    )
    op.create_index("ix_assignments_assignment_code", "assignments", ["assignment_code"], unique=True)
    op.create_index("ix_assignments_week_number", "assignments", ["week_number"])
    op.create_index("ix_assignments_is_active", "assignments", ["is_active"])
    op.create_index("ix_assignments_created_by", "assignments", ["created_by"])

    op.create_table(
        "assignment_submissions",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("assignment_id", sa.Uuid(), sa.ForeignKey("assignments.id"), nullable=False),
        sa.Column("student_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assignment_code_input", sa.String(10), nullable=False),
        sa.Column("file_url", sa.String(2048), nullable=True),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("submission_text", sa.Text(), nullable=True),
        sa.Column("status", submission_status_enum, nullable=False),
        sa.Column("grade", sa.Integer(), nullable=True),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
        sa.Column("graded_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("assignment_id", "student_id", name="uq_assignment_submissions_student"),
    )
    op.create_index("ix_assignment_submissions_assignment_id", "assignment_submissions", ["assignment_id"])
    op.create_index("ix_assignment_submissions_student_id", "assignment_submissions", ["student_id"])
    op.create_index("ix_assignment_submissions_status", "assignment_submissions", ["status"])
    op.create_index("ix_assignment_submissions_submitted_at", "assignment_submissions", ["submitted_at"])

    op.create_table(
        "brainstorming_sessions",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(2000), nullable=True),
        sa.Column("cover_color", sa.String(20), nullable=False),
        sa.Column("last_activity", sa.DateTime(), nullable=False),
        sa.Column("selected_filter_articles", sa.JSON(), nullable=False),
        sa.Column("last_selected_node_id", sa.String(255), nullable=True),
        sa.Column("last_selected_edge_id", sa.String(255), nullable=True),
        sa.Column("graph_filters", sa.JSON(), nullable=True),
    )
    op.create_index("ix_brainstorming_sessions_user_id", "brainstorming_sessions", ["user_id"])
    op.create_index("ix_brainstorming_sessions_last_activity", "brainstorming_sessions", ["last_activity"])


def downgrade() -> None:
    op.drop_table("brainstorming_sessions")
    op.drop_table("assignment_submissions")
    op.drop_table("assignments")
    submission_status_enum.drop(op.get_bind(), checkfirst=True)
