"""In-memory token ledger used for billing simulations and tests.

Implements the same ``UsageLedger`` interface as the SQL ledger against a
private account table, so a caller can dry-run debits without touching the
database.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from mysre.core.exceptions import InsufficientBalance, UserNotFound, ValidationError
from mysre.core.pricing import Tier, cost_per_token
from mysre.models.base import utcnow
from mysre.services.ledger import (
    ActionUsage,
    MonthlyUsageSummary,
    UsageResult,
    month_bounds,
    user_lock,
    validate_amount,
)


@dataclass
class Account:
    id: uuid.UUID
    name: str
    email: str
    tier: Tier
    token_balance: int
    monthly_token_limit: int


@dataclass
class SimulatedEvent:
    id: uuid.UUID
    user_id: uuid.UUID
    action: str
    tokens_used: int
    tier: Tier
    cost_per_token: Decimal
    total_cost: Decimal
    context: str | None
    metadata: dict[str, Any] | None
    created_at: datetime


DEMO_ACCOUNTS: tuple[Account, ...] = (
    Account(
        id=uuid.UUID("00000000-0000-4000-8000-000000000001"),
        name="Ahmad Fauzi",
        email="ahmad.fauzi@student.ac.id",
        tier=Tier.BASIC,
        token_balance=750,
        monthly_token_limit=1_000,
    ),
    Account(
        id=uuid.UUID("00000000-0000-4000-8000-000000000002"),
        name="Siti Nurhaliza",
        email="siti.nurhaliza@student.ac.id",
        tier=Tier.PRO,
        token_balance=8_500,
        monthly_token_limit=10_000,
    ),
    Account(
        id=uuid.UUID("00000000-0000-4000-8000-000000000003"),
        name="Budi Santoso",
        email="budi.santoso@student.ac.id",
        tier=Tier.ENTERPRISE,
        token_balance=95_000,
        monthly_token_limit=100_000,
    ),
)


@dataclass
class InMemoryTokenLedger:
    accounts: dict[uuid.UUID, Account] = field(default_factory=dict)
    events: list[SimulatedEvent] = field(default_factory=list)

    @classmethod
    def from_accounts(cls, accounts: Iterable[Account]) -> InMemoryTokenLedger:
        # Copies, so seeded fixtures are never mutated.
        return cls(accounts={a.id: replace(a) for a in accounts})

    @classmethod
    def with_demo_accounts(cls) -> InMemoryTokenLedger:
        return cls.from_accounts(DEMO_ACCOUNTS)

    def find_by_email(self, email: str) -> Account | None:
        return next((a for a in self.accounts.values() if a.email == email), None)

    def _account(self, user_id: uuid.UUID) -> Account:
        account = self.accounts.get(user_id)
        if account is None:
            raise UserNotFound(user_id)
        return account

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
            account = self._account(user_id)
            if account.token_balance < tokens_used:
                raise InsufficientBalance(required=tokens_used, available=account.token_balance)
            rate = cost_per_token(account.tier)
            self.events.append(SimulatedEvent(
                id=uuid.uuid4(),
                user_id=user_id,
                action=action,
                tokens_used=tokens_used,
                tier=account.tier,
                cost_per_token=rate,
                total_cost=rate * tokens_used,
                context=context,
                metadata=metadata,
                created_at=utcnow(),
            ))
            account.token_balance -= tokens_used
            return UsageResult(success=True, remaining_balance=account.token_balance)

    async def get_monthly_usage(self, user_id: uuid.UUID, month: date) -> MonthlyUsageSummary:
        start, end = month_bounds(month)
        summary = MonthlyUsageSummary()
        for event in self.events:
            if event.user_id != user_id or not start <= event.created_at < end:
                continue
            bucket = summary.usage_by_action.setdefault(event.action, ActionUsage())
            bucket.tokens += event.tokens_used
            bucket.cost += float(event.total_cost)
            bucket.count += 1
            summary.total_tokens += event.tokens_used
            summary.total_cost += float(event.total_cost)
        return summary

    async def reset_monthly_balance(self, user_id: uuid.UUID) -> int:
        account = self._account(user_id)
        account.token_balance = account.monthly_token_limit
        return account.token_balance
