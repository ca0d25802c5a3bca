"""BillingRecord model — monthly settlement rollup over usage events."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum

from sqlalchemy import Numeric, UniqueConstraint
from sqlmodel import Column, Field, SQLModel

from mysre.core.pricing import Tier
from mysre.models.base import TimestampMixin, new_uuid


class PaymentStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class BillingRecord(TimestampMixin, SQLModel, table=True):
    __tablename__ = "billing_history"
    __table_args__ = (
        UniqueConstraint("user_id", "billing_period", name="uq_billing_history_user_period"),
    )

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    # First day of the billed calendar month
    billing_period: date = Field(nullable=False, index=True)
    tokens_used: int = Field(default=0)
    total_cost: Decimal = Field(sa_column=Column(Numeric(20, 10), nullable=False))
    tier: Tier = Field(nullable=False)

    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    payment_date: datetime | None = Field(default=None)
    invoice_number: str | None = Field(default=None, max_length=50)


# ── Pydantic schemas ─────────────────────────────────────────

class BillingRecordRead(SQLModel):
    id: uuid.UUID
    user_id: uuid.UUID
    billing_period: date
    tokens_used: int
    total_cost: float
    tier: Tier
    payment_status: PaymentStatus
    payment_date: datetime | None
    invoice_number: str | None
    created_at: datetime
    updated_at: datetime


class PaymentStatusUpdate(SQLModel):
    payment_status: PaymentStatus
