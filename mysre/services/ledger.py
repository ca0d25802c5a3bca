"""Token ledger — authoritative balance accounting and usage logging.

A debit is a single transaction: a conditional decrement of
``users.token_balance`` (``WHERE token_balance >= :n``) followed by the
usage-event insert, committed together. The conditional update keeps the
balance non-negative across processes; the per-user lock serialises
callers inside this process so the tier read and the decrement see the
same row.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
import weakref
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Protocol

from pydantic import BaseModel, Field
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from mysre.core.database import commit_or_fail
from mysre.core.exceptions import (
    InsufficientBalance,
    InvalidAmount,
    MySREError,
    PersistenceFailure,
    UserNotFound,
    ValidationError,
)
from mysre.core.pricing import Tier, cost_per_token, monthly_token_limit
from mysre.models.base import utcnow
from mysre.models.usage_event import UsageEvent
from mysre.models.user import User

logger = logging.getLogger(__name__)


# ── Result types ─────────────────────────────────────────────

class ActionUsage(BaseModel):
    tokens: int = 0
    cost: float = 0.0
    count: int = 0


class MonthlyUsageSummary(BaseModel):
    total_tokens: int = 0
    total_cost: float = 0.0
    usage_by_action: dict[str, ActionUsage] = Field(default_factory=dict)


@dataclass
class UsageResult:
    success: bool
    remaining_balance: int
    event: UsageEvent | None = None


class UsageLedger(Protocol):
    """Interface shared by the SQL ledger and the in-memory simulation ledger."""

    async def record_usage(
        self,
        user_id: uuid.UUID,
        action: str,
        tokens_used: int,
        context: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> UsageResult: ...

    async def get_monthly_usage(self, user_id: uuid.UUID, month: date) -> MonthlyUsageSummary: ...

    async def reset_monthly_balance(self, user_id: uuid.UUID) -> int: ...


# ── Calendar helpers ─────────────────────────────────────────

def month_start(value: date) -> date:
    return date(value.year, value.month, 1)


def next_month(value: date) -> date:
    if value.month == 12:
        return date(value.year + 1, 1, 1)
    return date(value.year, value.month + 1, 1)


def previous_month(value: date) -> date:
    if value.month == 1:
        return date(value.year - 1, 12, 1)
    return date(value.year, value.month - 1, 1)


def month_bounds(value: date) -> tuple[datetime, datetime]:
    """Half-open UTC range ``[first day, first day of next month)``."""
    start = month_start(value)
    end = next_month(start)
    return (
        datetime(start.year, start.month, start.day),
        datetime(end.year, end.month, end.day),
    )


def parse_month(raw: str) -> date:
    """Accept ``YYYY-MM``, ``YYYY-MM-DD`` or a full ISO timestamp."""
    raw = raw.strip()
    try:
        if len(raw) == 7:
            return datetime.strptime(raw, "%Y-%m").date()
        return datetime.fromisoformat(raw).date()
    except ValueError:
        raise ValidationError(f"Invalid month: {raw!r} (expected YYYY-MM)") from None


def validate_amount(tokens: Any) -> int:
    if isinstance(tokens, bool) or not isinstance(tokens, int) or tokens <= 0:
        raise InvalidAmount(tokens)
    return tokens


# ── Per-user serialisation ───────────────────────────────────

_user_locks: weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock] = weakref.WeakValueDictionary()


def user_lock(user_id: uuid.UUID) -> asyncio.Lock:
    """Return the process-wide lock guarding ``user_id``'s balance."""
    lock = _user_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _user_locks[user_id] = lock
    return lock


# ── SQL ledger ───────────────────────────────────────────────

class TokenLedger:
    """Ledger backed by the ``users`` and ``token_usage`` tables."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record_usage(
        self,
        user_id: uuid.UUID,
        action: str,
        tokens_used: int,
        context: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> UsageResult:
        tokens_used = validate_amount(tokens_used)
        if not action or not action.strip():
            raise ValidationError("Action is required")

        async with user_lock(user_id):
            try:
                row = (await self._session.execute(
                    select(User.tier, User.token_balance).where(User.id == user_id)
                )).one_or_none()
                if row is None:
                    raise UserNotFound(user_id)

                tier, balance = row.tier, row.token_balance
                if balance < tokens_used:
                    raise InsufficientBalance(required=tokens_used, available=balance)

                rate = cost_per_token(tier)

                # Conditional decrement; no row back means a concurrent debit won.
                new_balance = (await self._session.execute(
                    update(User)
                    .where(User.id == user_id, User.token_balance >= tokens_used)
                    .values(token_balance=User.token_balance - tokens_used, updated_at=utcnow())
                    .returning(User.token_balance)
                )).scalar_one_or_none()
                if new_balance is None:
                    current = (await self._session.execute(
                        select(User.token_balance).where(User.id == user_id)
                    )).scalar_one_or_none()
                    if current is None:
                        raise UserNotFound(user_id)
                    raise InsufficientBalance(required=tokens_used, available=current)

                event = UsageEvent(
                    user_id=user_id,
                    action=action,
                    tokens_used=tokens_used,
                    tier=tier,
                    cost_per_token=rate,
                    total_cost=rate * tokens_used,
                    context=context,
                    metadata_json=json.dumps(metadata, default=str) if metadata is not None else None,
                )
                self._session.add(event)
                await self._session.commit()
            except SQLAlchemyError as exc:
                await self._session.rollback()
                logger.exception("Token debit failed for user %s", user_id)
                raise PersistenceFailure(str(exc)) from exc
            except MySREError:
                # Nothing was written; release the read snapshot before surfacing.
                await self._session.rollback()
                raise

        logger.info(
            "Recorded %d tokens for user %s (%s), balance now %d",
            tokens_used, user_id, action, new_balance,
        )
        return UsageResult(success=True, remaining_balance=new_balance, event=event)

    async def get_monthly_usage(self, user_id: uuid.UUID, month: date) -> MonthlyUsageSummary:
        """Aggregate a user's events for one calendar month. Empty months are zeroed."""
        start, end = month_bounds(month)
        stmt = (
            select(
                UsageEvent.action,
                func.sum(UsageEvent.tokens_used).label("tokens"),
                func.sum(UsageEvent.total_cost).label("cost"),
                func.count().label("count"),
            )
            .where(
                UsageEvent.user_id == user_id,
                UsageEvent.created_at >= start,
                UsageEvent.created_at < end,
            )
            .group_by(UsageEvent.action)
        )
        try:
            rows = (await self._session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(str(exc)) from exc

        summary = MonthlyUsageSummary()
        for row in rows:
            cost = round(float(row.cost or 0), 10)
            summary.usage_by_action[row.action] = ActionUsage(
                tokens=int(row.tokens or 0), cost=cost, count=row.count,
            )
            summary.total_tokens += int(row.tokens or 0)
            summary.total_cost += cost
        summary.total_cost = round(summary.total_cost, 10)
        return summary

    async def reset_monthly_balance(self, user_id: uuid.UUID) -> int:
        """Set the balance back to the user's monthly limit; returns the new balance."""
        return await self._write_balance(
            user_id,
            update(User)
            .where(User.id == user_id)
            .values(token_balance=User.monthly_token_limit, updated_at=utcnow())
            .returning(User.token_balance),
        )

    async def top_up(self, user_id: uuid.UUID, amount: int) -> int:
        """Credit ``amount`` tokens; returns the new balance."""
        amount = validate_amount(amount)
        new_balance = await self._write_balance(
            user_id,
            update(User)
            .where(User.id == user_id)
            .values(token_balance=User.token_balance + amount, updated_at=utcnow())
            .returning(User.token_balance),
        )
        logger.info("Topped up %d tokens for user %s, balance now %d", amount, user_id, new_balance)
        return new_balance

    async def update_tier(self, user_id: uuid.UUID, tier: str) -> User:
        """Move a user to ``tier`` and adopt that tier's monthly limit."""
        limit = monthly_token_limit(tier)
        user = await self._session.get(User, user_id)
        if user is None:
            raise UserNotFound(user_id)
        user.tier = Tier(tier)
        user.monthly_token_limit = limit
        user.updated_at = utcnow()
        self._session.add(user)
        await commit_or_fail(self._session)
        await self._session.refresh(user)
        return user

    async def _write_balance(self, user_id: uuid.UUID, stmt) -> int:
        async with user_lock(user_id):
            try:
                new_balance = (await self._session.execute(stmt)).scalar_one_or_none()
                if new_balance is None:
                    raise UserNotFound(user_id)
                await self._session.commit()
            except SQLAlchemyError as exc:
                await self._session.rollback()
                raise PersistenceFailure(str(exc)) from exc
            except MySREError:
                await self._session.rollback()
                raise
        return new_balance
