"""UsageEvent model — one immutable record per token debit."""

import json
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Numeric, Text
from sqlmodel import Column, Field, SQLModel

from mysre.core.pricing import Tier
from mysre.models.base import TimestampMixin, new_uuid


class UsageEvent(TimestampMixin, SQLModel, table=True):
    __tablename__ = "token_usage"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    # Free-form label, e.g. "ai_chat", "content_generation"
    action: str = Field(max_length=100, nullable=False, index=True)
    tokens_used: int = Field(nullable=False)

    # Rate and cost are frozen at write time; never recomputed from current pricing.
    tier: Tier = Field(nullable=False)
    cost_per_token: Decimal = Field(sa_column=Column(Numeric(18, 10), nullable=False))
    total_cost: Decimal = Field(sa_column=Column(Numeric(20, 10), nullable=False))

    context: str | None = Field(default=None, sa_column=Column(Text))
    metadata_json: str | None = Field(default=None, sa_column=Column(Text))


# ── Pydantic schemas ─────────────────────────────────────────

class UsageEventRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    action: str
    tokens_used: int
    tier: Tier
    cost_per_token: float
    total_cost: float
    context: str | None
    metadata: dict | None
    created_at: datetime

    @classmethod
    def from_event(cls, event: UsageEvent) -> "UsageEventRead":
        return cls(
            id=event.id,
            user_id=event.user_id,
            action=event.action,
            tokens_used=event.tokens_used,
            tier=event.tier,
            cost_per_token=float(event.cost_per_token),
            total_cost=float(event.total_cost),
            context=event.context,
            metadata=json.loads(event.metadata_json) if event.metadata_json else None,
            created_at=event.created_at,
        )
