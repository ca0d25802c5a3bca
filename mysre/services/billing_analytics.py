"""Billing analytics — read-only rollups over the usage history.

Everything here is computed on demand from ``token_usage`` rows. Costs are
summed from the stored ``total_cost`` of each event, never recomputed from
the current price table.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from mysre.core.database import commit_or_fail
from mysre.core.exceptions import NotFoundError, PersistenceFailure, ValidationError
from mysre.core.pricing import Tier
from mysre.models.base import CamelModel, utcnow
from mysre.models.billing_record import BillingRecord, BillingRecordRead, PaymentStatus
from mysre.models.usage_event import UsageEvent, UsageEventRead
from mysre.models.user import User, UserBillingRead, UserRead, UserRole
from mysre.services.ledger import (
    MonthlyUsageSummary,
    TokenLedger,
    month_bounds,
    month_start,
    previous_month,
)

logger = logging.getLogger(__name__)

Granularity = Literal["day", "month"]

HISTORY_LIMIT = 12
RECENT_EVENTS_LIMIT = 20
TREND_DAYS = 30
TREND_MONTHS = 12
PRO_DOWNGRADE_SAVINGS = 29.99


# ── Schemas ──────────────────────────────────────────────────

class TrendPoint(BaseModel):
    date: str
    tokens: int
    cost: float


class TierRecommendation(BaseModel):
    recommended_tier: Tier
    potential_savings: float
    reason: str


class UserBillingAnalytics(CamelModel):
    user: UserRead
    current_month_usage: MonthlyUsageSummary
    billing_history: list[BillingRecordRead]
    recent_token_usage: list[UsageEventRead]
    usage_trend: list[TrendPoint]
    tier_recommendation: TierRecommendation | None = None


class TopSpender(BaseModel):
    user: UserBillingRead
    monthly_cost: float
    tokens_used: int


class UsageGrowth(BaseModel):
    current_month: float
    previous_month: float
    growth_rate: float


class BillingStats(CamelModel):
    total_users: int
    total_revenue: float
    monthly_revenue: float
    average_tokens_per_user: float
    top_spending_users: list[TopSpender]
    revenue_by_tier: dict[str, float]
    usage_growth: UsageGrowth


# ── Pure helpers ─────────────────────────────────────────────

def tier_recommendation(user: User, usage: MonthlyUsageSummary) -> TierRecommendation | None:
    """Suggest a tier change from the share of the monthly limit used."""
    limit = user.monthly_token_limit or 1
    usage_percent = usage.total_tokens / limit * 100

    if user.tier == Tier.BASIC and usage_percent > 80:
        return TierRecommendation(
            recommended_tier=Tier.PRO,
            potential_savings=0.0,
            reason=(
                "You are using 80%+ of your token limit. Upgrade to Pro for more "
                "tokens and lower cost per token."
            ),
        )
    if user.tier == Tier.PRO and usage_percent < 20:
        return TierRecommendation(
            recommended_tier=Tier.BASIC,
            potential_savings=PRO_DOWNGRADE_SAVINGS,
            reason=(
                "You are using less than 20% of your token limit. Downgrade to "
                "Basic to save money."
            ),
        )
    return None


def bucket_trend(
    rows: list[tuple], granularity: Granularity,
) -> list[TrendPoint]:
    """Fold (created_at, tokens, cost) rows into chronological trend points."""
    buckets: dict[str, list] = defaultdict(lambda: [0, Decimal(0)])
    fmt = "%Y-%m-%d" if granularity == "day" else "%Y-%m"
    for created_at, tokens, cost in rows:
        bucket = buckets[created_at.strftime(fmt)]
        bucket[0] += tokens
        bucket[1] += Decimal(cost)
    return [
        TrendPoint(date=key, tokens=tokens, cost=round(float(cost), 10))
        for key, (tokens, cost) in sorted(buckets.items())
    ]


def growth_rate(current: float, previous: float) -> float:
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


# ── Aggregator ───────────────────────────────────────────────

class BillingAggregator:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._ledger = TokenLedger(session)

    async def _all(self, stmt) -> list:
        try:
            return list((await self._session.execute(stmt)).all())
        except SQLAlchemyError as exc:
            raise PersistenceFailure(str(exc)) from exc

    async def _billable_users(self) -> list[User]:
        rows = await self._all(
            select(User)
            .where(User.role == UserRole.USER)
            .order_by(User.created_at.desc())  # type: ignore[union-attr]
        )
        return [row[0] for row in rows]

    async def _revenue(self, start=None, end=None) -> float:
        stmt = select(func.coalesce(func.sum(UsageEvent.total_cost), 0))
        if start is not None:
            stmt = stmt.where(UsageEvent.created_at >= start, UsageEvent.created_at < end)
        rows = await self._all(stmt)
        return round(float(rows[0][0] or 0), 10)

    async def usage_trend(
        self, user_id: uuid.UUID, granularity: Granularity = "day",
    ) -> list[TrendPoint]:
        today = utcnow().date()
        if granularity == "day":
            since = today - timedelta(days=TREND_DAYS)
        else:
            since = month_start(today)
            for _ in range(TREND_MONTHS - 1):
                since = previous_month(since)
        rows = await self._all(
            select(UsageEvent.created_at, UsageEvent.tokens_used, UsageEvent.total_cost)
            .where(
                UsageEvent.user_id == user_id,
                UsageEvent.created_at >= datetime.combine(since, time.min),
            )
            .order_by(UsageEvent.created_at.asc())  # type: ignore[union-attr]
        )
        return bucket_trend([tuple(r) for r in rows], granularity)

    async def user_billing(
        self, user: User, granularity: Granularity = "day",
    ) -> UserBillingAnalytics:
        current = await self._ledger.get_monthly_usage(user.id, utcnow().date())

        history = await self._all(
            select(BillingRecord)
            .where(BillingRecord.user_id == user.id)
            .order_by(BillingRecord.billing_period.desc())  # type: ignore[union-attr]
            .limit(HISTORY_LIMIT)
        )
        recent = await self._all(
            select(UsageEvent)
            .where(UsageEvent.user_id == user.id)
            .order_by(UsageEvent.created_at.desc())  # type: ignore[union-attr]
            .limit(RECENT_EVENTS_LIMIT)
        )

        return UserBillingAnalytics(
            user=UserRead.model_validate(user),
            current_month_usage=current,
            billing_history=[BillingRecordRead.model_validate(r[0]) for r in history],
            recent_token_usage=[UsageEventRead.from_event(r[0]) for r in recent],
            usage_trend=await self.usage_trend(user.id, granularity),
            tier_recommendation=tier_recommendation(user, current),
        )

    async def get_all_users_billing(
        self, granularity: Granularity = "day",
    ) -> list[UserBillingAnalytics]:
        return [
            await self.user_billing(user, granularity)
            for user in await self._billable_users()
        ]

    async def get_billing_stats(self, top_n: int = 10) -> BillingStats:
        today = utcnow().date()
        cur_start, cur_end = month_bounds(today)
        prev_start, prev_end = month_bounds(previous_month(today))

        users = await self._billable_users()

        per_user = {
            row.user_id: (int(row.tokens or 0), round(float(row.cost or 0), 10))
            for row in await self._all(
                select(
                    UsageEvent.user_id,
                    func.sum(UsageEvent.tokens_used).label("tokens"),
                    func.sum(UsageEvent.total_cost).label("cost"),
                )
                .where(UsageEvent.created_at >= cur_start, UsageEvent.created_at < cur_end)
                .group_by(UsageEvent.user_id)
            )
        }

        revenue_by_tier = {tier.value: 0.0 for tier in Tier}
        for row in await self._all(
            select(UsageEvent.tier, func.sum(UsageEvent.total_cost).label("cost"))
            .where(UsageEvent.created_at >= cur_start, UsageEvent.created_at < cur_end)
            .group_by(UsageEvent.tier)
        ):
            revenue_by_tier[Tier(row.tier).value] = round(float(row.cost or 0), 10)

        spenders = [
            TopSpender(
                user=UserBillingRead.model_validate(user),
                monthly_cost=per_user.get(user.id, (0, 0.0))[1],
                tokens_used=per_user.get(user.id, (0, 0.0))[0],
            )
            for user in users
        ]
        spenders.sort(key=lambda s: (-s.monthly_cost, str(s.user.id)))

        monthly_revenue = await self._revenue(cur_start, cur_end)
        previous_revenue = await self._revenue(prev_start, prev_end)
        monthly_tokens = sum(s.tokens_used for s in spenders)

        return BillingStats(
            total_users=len(users),
            total_revenue=await self._revenue(),
            monthly_revenue=monthly_revenue,
            average_tokens_per_user=monthly_tokens / len(users) if users else 0.0,
            top_spending_users=spenders[:top_n],
            revenue_by_tier=revenue_by_tier,
            usage_growth=UsageGrowth(
                current_month=monthly_revenue,
                previous_month=previous_revenue,
                growth_rate=growth_rate(monthly_revenue, previous_revenue),
            ),
        )

    # ── Billing records ──────────────────────────────────────

    async def materialize_billing_records(self, period: date) -> list[BillingRecord]:
        """Upsert one pending record per user with usage in ``period``.

        Records that already left ``pending`` are not touched, so re-running
        a closed month is safe.
        """
        period = month_start(period)
        start, end = month_bounds(period)
        rows = await self._all(
            select(
                UsageEvent.user_id,
                User.tier,
                func.sum(UsageEvent.tokens_used).label("tokens"),
                func.sum(UsageEvent.total_cost).label("cost"),
            )
            .join(User, UsageEvent.user_id == User.id)
            .where(UsageEvent.created_at >= start, UsageEvent.created_at < end)
            .group_by(UsageEvent.user_id, User.tier)
        )

        records: list[BillingRecord] = []
        try:
            for row in rows:
                existing = (await self._session.execute(
                    select(BillingRecord).where(
                        BillingRecord.user_id == row.user_id,
                        BillingRecord.billing_period == period,
                    )
                )).scalar_one_or_none()

                if existing is None:
                    record = BillingRecord(
                        user_id=row.user_id,
                        billing_period=period,
                        tokens_used=int(row.tokens or 0),
                        total_cost=Decimal(str(row.cost or 0)),
                        tier=row.tier,
                        invoice_number=f"INV-{period:%Y%m}-{uuid.uuid4().hex[:8].upper()}",
                    )
                elif existing.payment_status == PaymentStatus.PENDING:
                    record = existing
                    record.tokens_used = int(row.tokens or 0)
                    record.total_cost = Decimal(str(row.cost or 0))
                    record.updated_at = utcnow()
                else:
                    records.append(existing)
                    continue
                self._session.add(record)
                records.append(record)
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise ValidationError(f"Billing records for {period:%Y-%m} are being written concurrently") from exc
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise PersistenceFailure(str(exc)) from exc

        for record in records:
            await self._session.refresh(record)
        logger.info("Materialized %d billing records for %s", len(records), f"{period:%Y-%m}")
        return records

    async def update_payment_status(
        self, record_id: uuid.UUID, payment_status: PaymentStatus,
    ) -> BillingRecord:
        record = await self._session.get(BillingRecord, record_id)
        if record is None:
            raise NotFoundError("Billing record not found")

        record.payment_status = payment_status
        if payment_status == PaymentStatus.PAID and record.payment_date is None:
            record.payment_date = utcnow()
        record.updated_at = utcnow()
        self._session.add(record)
        await commit_or_fail(self._session)
        await self._session.refresh(record)
        return record
