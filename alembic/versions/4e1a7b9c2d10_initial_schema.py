"""initial schema: users, drafts, articles, analytics and token billing

Revision ID: 4e1a7b9c2d10
Revises: 
Create Date: 2026-10-18 09:12:44.102311

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '4e1a7b9c2d10'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# SQLAlchemy persists enum member names
tier_enum = sa.Enum("BASIC", "PRO", "ENTERPRISE", name="tier")
role_enum = sa.Enum("ADMIN", "USER", name="userrole")
group_enum = sa.Enum("A", "B", name="usergroup")
payment_enum = sa.Enum("PENDING", "PAID", "OVERDUE", "CANCELLED", name="paymentstatus")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", role_enum, nullable=False),
        sa.Column("group", group_enum, nullable=True),
        sa.Column("nim", sa.String(50), nullable=True),
        sa.Column("avatar_url", sa.String(2048), nullable=True),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False),
        sa.Column("is_phone_verified", sa.Boolean(), nullable=False),
        sa.Column("tier", tier_enum, nullable=False),
        sa.Column("token_balance", sa.Integer(), nullable=False),
        sa.Column("monthly_token_limit", sa.Integer(), nullable=False),
        sa.CheckConstraint("token_balance >= 0", name="ck_users_token_balance_non_negative"),
        sa.CheckConstraint("monthly_token_limit > 0", name="ck_users_monthly_limit_positive"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_nim", "users", ["nim"])

    op.create_table(
        "writer_sessions",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(2000), nullable=True),
        sa.Column("cover_color", sa.String(20), nullable=False),
        sa.Column("last_activity", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_writer_sessions_user_id", "writer_sessions", ["user_id"])
    op.create_index("ix_writer_sessions_last_activity", "writer_sessions", ["last_activity"])

    op.create_table(
        "articles",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("file_path", sa.String(1024), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("session_id", sa.Uuid(), sa.ForeignKey("writer_sessions.id"), nullable=True),
        sa.Column("abstract", sa.Text(), nullable=True),
        sa.Column("author", sa.String(500), nullable=True),
        sa.Column("doi", sa.String(255), nullable=True),
        sa.Column("keywords", sa.String(1000), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
    )
    op.create_index("ix_articles_title", "articles", ["title"])
    op.create_index("ix_articles_user_id", "articles", ["user_id"])
    op.create_index("ix_articles_session_id", "articles", ["session_id"])
    op.create_index("ix_articles_year", "articles", ["year"])

    op.create_table(
        "token_usage",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("tokens_used", sa.Integer(), nullable=False),
        sa.Column("tier", tier_enum, nullable=False),
        sa.Column("cost_per_token", sa.Numeric(18, 10), nullable=False),
        sa.Column("total_cost", sa.Numeric(20, 10), nullable=False),
        sa.Column("context", sa.Text(), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
    )
    op.create_index("ix_token_usage_user_id", "token_usage", ["user_id"])
    op.create_index("ix_token_usage_action", "token_usage", ["action"])

    op.create_table(
        "billing_history",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("billing_period", sa.Date(), nullable=False),
        sa.Column("tokens_used", sa.Integer(), nullable=False),
        sa.Column("total_cost", sa.Numeric(20, 10), nullable=False),
        sa.Column("tier", tier_enum, nullable=False),
        sa.Column("payment_status", payment_enum, nullable=False),
        sa.Column("payment_date", sa.DateTime(), nullable=True),
        sa.Column("invoice_number", sa.String(50), nullable=True),
        sa.UniqueConstraint("user_id", "billing_period", name="uq_billing_history_user_period"),
    )
    op.create_index("ix_billing_history_user_id", "billing_history", ["user_id"])
    op.create_index("ix_billing_history_billing_period", "billing_history", ["billing_period"])

    op.create_table(
        "analytics_events",
        *_timestamps(),
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("document", sa.String(500), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
    )
    op.create_index("ix_analytics_events_user_id", "analytics_events", ["user_id"])
    op.create_index("ix_analytics_events_action", "analytics_events", ["action"])


def downgrade() -> None:
    op.drop_table("analytics_events")
    op.drop_table("billing_history")
    op.drop_table("token_usage")
    op.drop_table("articles")
    op.drop_table("writer_sessions")
    op.drop_table("users")
    for enum in (payment_enum, group_enum, role_enum, tier_enum):
        enum.drop(op.get_bind(), checkfirst=True)
