"""Tests for the usage recorder's low-balance advisory."""

import uuid
from unittest.mock import AsyncMock

import pytest

from mysre.core import cache
from mysre.core.exceptions import InsufficientBalance
from mysre.core.pricing import Tier
from mysre.services.ledger import UsageResult
from mysre.services.simulation import Account, InMemoryTokenLedger
from mysre.services.usage_recorder import UsageRecorder


def _ledger(balance: int) -> tuple[InMemoryTokenLedger, uuid.UUID]:
    account = Account(
        id=uuid.uuid4(), name="Test", email="t@univ.ac.id",
        tier=Tier.BASIC, token_balance=balance, monthly_token_limit=1_000,
    )
    return InMemoryTokenLedger.from_accounts([account]), account.id


async def test_no_warning_above_threshold():
    ledger, user_id = _ledger(500)

    outcome = await UsageRecorder(ledger, threshold=100).record(user_id, "ai_chat", 400)

    assert outcome.result.remaining_balance == 100
    assert outcome.warning is None


async def test_warning_below_threshold():
    ledger, user_id = _ledger(500)

    outcome = await UsageRecorder(ledger, threshold=100).record(user_id, "ai_chat", 450)

    assert outcome.result.remaining_balance == 50
    assert outcome.warning is not None
    assert outcome.warning.remaining_balance == 50
    assert outcome.warning.threshold == 100
    assert "50 tokens remaining" in outcome.warning.message


async def test_default_threshold_from_settings():
    ledger, user_id = _ledger(150)

    outcome = await UsageRecorder(ledger).record(user_id, "ai_chat", 60)

    assert outcome.warning is not None
    assert outcome.warning.threshold == 100


async def test_ledger_errors_propagate_unchanged():
    ledger, user_id = _ledger(10)

    with pytest.raises(InsufficientBalance):
        await UsageRecorder(ledger).record(user_id, "ai_chat", 11)
    assert ledger.accounts[user_id].token_balance == 10


async def test_successful_debit_invalidates_billing_cache():
    cache.put(("billing", "stats", 10), "stale")
    cache.put(("other", "key"), "kept")
    ledger = AsyncMock()
    ledger.record_usage.return_value = UsageResult(success=True, remaining_balance=900)

    await UsageRecorder(ledger, threshold=100).record(uuid.uuid4(), "ai_chat", 100)

    assert cache.get(("billing", "stats", 10)) is None
    assert cache.get(("other", "key")) == "kept"
    cache.clear()
