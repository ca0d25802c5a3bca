"""Token billing endpoints — usage recording, analytics and admin operations."""

import dataclasses
import logging
import time
import uuid
from typing import Any, Literal

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from mysre.api.deps import AdminAuth, Session
from mysre.core import cache
from mysre.core.exceptions import NotFoundError, UserNotFound, ValidationError
from mysre.core.pricing import TIER_MONTHLY_LIMITS, TIER_PRICING, calc_cost
from mysre.models.base import CamelModel, utcnow
from mysre.models.billing_record import BillingRecordRead, PaymentStatusUpdate
from mysre.models.user import User, UserBillingRead
from mysre.services.billing_analytics import (
    BillingAggregator,
    BillingStats,
    UserBillingAnalytics,
)
from mysre.services.ledger import (
    MonthlyUsageSummary,
    TokenLedger,
    parse_month,
    previous_month,
    validate_amount,
)
from mysre.services.simulation import InMemoryTokenLedger
from mysre.services.usage_recorder import UsageRecorder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["billing"])

STATS_TTL = 30


# ── Schemas ──────────────────────────────────────────────────

class TokenUsageResponse(CamelModel):
    user: UserBillingRead
    monthly_usage: MonthlyUsageSummary


class TokenUsageCreate(CamelModel):
    user_id: uuid.UUID
    action: str = Field(min_length=1, max_length=100)
    tokens_used: int
    context: str | None = None
    metadata: dict[str, Any] | None = None


class LowBalanceAdvisory(BaseModel):
    remaining_balance: int
    threshold: int
    message: str


class TokenUsageRecorded(BaseModel):
    success: bool = True
    message: str = "Token usage recorded successfully"
    remaining_balance: int
    low_balance_warning: LowBalanceAdvisory | None = None


class StatsResponse(BaseModel):
    success: bool = True
    data: BillingStats


class UsersBillingResponse(BaseModel):
    success: bool = True
    data: list[UserBillingAnalytics]


class TopUpRequest(CamelModel):
    user_id: uuid.UUID
    amount: int
    method: str | None = None


class TopUpIntent(CamelModel):
    user_id: uuid.UUID
    amount: int
    method: str | None
    transaction_id: str
    status: str = "pending"


class TopUpResponse(BaseModel):
    success: bool = True
    message: str = "Top-up request processed"
    data: TopUpIntent


class CreditRequest(CamelModel):
    user_id: uuid.UUID
    amount: int


class TierChangeRequest(CamelModel):
    user_id: uuid.UUID
    tier: str


class ResetBalanceRequest(CamelModel):
    user_id: uuid.UUID


class UserBillingResponse(BaseModel):
    success: bool = True
    user: UserBillingRead


class TierPricingEntry(BaseModel):
    cost_per_token: float
    monthly_token_limit: int


class PricingResponse(BaseModel):
    tiers: dict[str, TierPricingEntry]


class MaterializeRequest(BaseModel):
    period: str | None = None  # YYYY-MM; defaults to the previous month


class BillingRecordsResponse(BaseModel):
    success: bool = True
    data: list[BillingRecordRead]


class BillingRecordResponse(BaseModel):
    success: bool = True
    data: BillingRecordRead


class SimulateRequest(CamelModel):
    user_email: str = Field(min_length=1)
    action: str = Field(min_length=1, max_length=100)
    tokens_used: int
    context: str | None = None


class SimulationResponse(BaseModel):
    success: bool = True
    message: str = "Token usage simulated successfully"
    simulation_data: dict[str, Any]


# ── Usage ────────────────────────────────────────────────────

@router.get("/token-usage", response_model=TokenUsageResponse)
async def get_token_usage(
    session: Session,
    user_id: uuid.UUID | None = Query(None, alias="userId"),
    month: str | None = Query(None),
) -> TokenUsageResponse:
    """A user's billing fields plus their usage summary for one month."""
    if user_id is None:
        raise ValidationError("User ID is required")
    month_date = parse_month(month) if month else utcnow().date()

    user = await _get_user(user_id, session)
    summary = await TokenLedger(session).get_monthly_usage(user_id, month_date)
    return TokenUsageResponse(user=UserBillingRead.model_validate(user), monthly_usage=summary)


@router.post(
    "/token-usage",
    response_model=TokenUsageRecorded,
    response_model_exclude_none=True,
)
async def record_token_usage(body: TokenUsageCreate, session: Session) -> TokenUsageRecorded:
    outcome = await UsageRecorder(TokenLedger(session)).record(
        body.user_id, body.action, body.tokens_used, body.context, body.metadata,
    )
    warning = outcome.warning
    return TokenUsageRecorded(
        remaining_balance=outcome.result.remaining_balance,
        low_balance_warning=(
            LowBalanceAdvisory(**dataclasses.asdict(warning)) if warning else None
        ),
    )


# ── Analytics ────────────────────────────────────────────────

@router.get("/stats", response_model=StatsResponse)
async def get_billing_stats(
    session: Session,
    top_n: int = Query(10, alias="topN", ge=1, le=100),
) -> StatsResponse:
    cache_key = ("billing", "stats", top_n)
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    result = StatsResponse(data=await BillingAggregator(session).get_billing_stats(top_n))
    cache.put(cache_key, result, ttl=STATS_TTL)
    return result


@router.get("/users", response_model=UsersBillingResponse)
async def get_users_billing(
    session: Session,
    granularity: Literal["day", "month"] = Query("day"),
) -> UsersBillingResponse:
    cache_key = ("billing", "users", granularity)
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    result = UsersBillingResponse(
        data=await BillingAggregator(session).get_all_users_billing(granularity),
    )
    cache.put(cache_key, result, ttl=STATS_TTL)
    return result


@router.get("/pricing", response_model=PricingResponse)
async def get_pricing() -> PricingResponse:
    """Return the tier price table so clients don't need a local copy."""
    return PricingResponse(
        tiers={
            tier.value: TierPricingEntry(
                cost_per_token=float(rate),
                monthly_token_limit=TIER_MONTHLY_LIMITS[tier],
            )
            for tier, rate in TIER_PRICING.items()
        },
    )


# ── Balance management ───────────────────────────────────────

@router.post("/top-up", response_model=TopUpResponse)
async def request_top_up(body: TopUpRequest) -> TopUpResponse:
    """Open a payment intent. The balance is credited later via /billing/credit."""
    amount = validate_amount(body.amount)
    intent = TopUpIntent(
        user_id=body.user_id,
        amount=amount,
        method=body.method,
        transaction_id=f"topup_{int(time.time() * 1000)}",
    )
    logger.info("Top-up intent %s for user %s (%d tokens)", intent.transaction_id, body.user_id, amount)
    return TopUpResponse(data=intent)


@router.post("/credit", response_model=UserBillingResponse)
async def credit_tokens(body: CreditRequest, auth: AdminAuth, session: Session) -> UserBillingResponse:
    await TokenLedger(session).top_up(body.user_id, body.amount)
    cache.invalidate_prefix(("billing",))
    return UserBillingResponse(user=UserBillingRead.model_validate(await _get_user(body.user_id, session)))


@router.put("/tier", response_model=UserBillingResponse)
async def change_tier(body: TierChangeRequest, auth: AdminAuth, session: Session) -> UserBillingResponse:
    user = await TokenLedger(session).update_tier(body.user_id, body.tier)
    cache.invalidate_prefix(("billing",))
    return UserBillingResponse(user=UserBillingRead.model_validate(user))


@router.post("/reset-balance", response_model=UserBillingResponse)
async def reset_balance(body: ResetBalanceRequest, auth: AdminAuth, session: Session) -> UserBillingResponse:
    await TokenLedger(session).reset_monthly_balance(body.user_id)
    cache.invalidate_prefix(("billing",))
    return UserBillingResponse(user=UserBillingRead.model_validate(await _get_user(body.user_id, session)))


# ── Billing records ──────────────────────────────────────────

@router.post(
    "/records",
    response_model=BillingRecordsResponse,
    status_code=status.HTTP_201_CREATED,
)
async def materialize_records(
    body: MaterializeRequest, auth: AdminAuth, session: Session,
) -> BillingRecordsResponse:
    period = parse_month(body.period) if body.period else previous_month(utcnow().date())
    records = await BillingAggregator(session).materialize_billing_records(period)
    cache.invalidate_prefix(("billing",))
    return BillingRecordsResponse(data=[BillingRecordRead.model_validate(r) for r in records])


@router.patch("/records/{record_id}", response_model=BillingRecordResponse)
async def update_record_status(
    record_id: uuid.UUID, body: PaymentStatusUpdate, auth: AdminAuth, session: Session,
) -> BillingRecordResponse:
    record = await BillingAggregator(session).update_payment_status(record_id, body.payment_status)
    cache.invalidate_prefix(("billing",))
    return BillingRecordResponse(data=BillingRecordRead.model_validate(record))


# ── Simulation ───────────────────────────────────────────────

@router.post("/simulate", response_model=SimulationResponse)
async def simulate_usage(body: SimulateRequest) -> SimulationResponse:
    """Dry-run a debit against the seeded demo accounts; nothing is persisted."""
    ledger = InMemoryTokenLedger.with_demo_accounts()
    account = ledger.find_by_email(body.user_email)
    if account is None:
        raise NotFoundError("Mock user not found")

    outcome = await UsageRecorder(ledger).record(
        account.id, body.action, body.tokens_used, body.context,
    )
    event = ledger.events[-1]
    return SimulationResponse(
        simulation_data={
            "user": dataclasses.asdict(account),
            "usage_record": {
                "id": event.id,
                "userId": event.user_id,
                "action": event.action,
                "tokens_used": event.tokens_used,
                "cost_per_token": float(event.cost_per_token),
                "total_cost": float(event.total_cost),
                "context": event.context,
                "timestamp": event.created_at,
            },
            "remaining_balance": outcome.result.remaining_balance,
            "cost_breakdown": {
                "tokens_used": event.tokens_used,
                "cost_per_token": float(event.cost_per_token),
                "total_cost": float(calc_cost(account.tier, event.tokens_used)),
                "tier": account.tier,
            },
        },
    )


# ── Internal helper ───────────────────────────────────────────

async def _get_user(user_id: uuid.UUID, session) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise UserNotFound(user_id)
    return user
