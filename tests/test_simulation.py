"""Tests for the in-memory ledger used by /billing/simulate."""

import asyncio
import uuid

import pytest

from mysre.core.exceptions import InsufficientBalance, InvalidAmount, UserNotFound
from mysre.core.pricing import Tier
from mysre.services.simulation import DEMO_ACCOUNTS, Account, InMemoryTokenLedger


def _ledger(balance: int = 1_000, tier: Tier = Tier.BASIC) -> tuple[InMemoryTokenLedger, uuid.UUID]:
    account = Account(
        id=uuid.uuid4(), name="Test", email="t@univ.ac.id",
        tier=tier, token_balance=balance, monthly_token_limit=1_000,
    )
    return InMemoryTokenLedger.from_accounts([account]), account.id


async def test_demo_pro_debit():
    ledger = InMemoryTokenLedger.with_demo_accounts()
    siti = ledger.find_by_email("siti.nurhaliza@student.ac.id")

    result = await ledger.record_usage(siti.id, "content_generation", 500)

    assert result.remaining_balance == 8_000
    assert len(ledger.events) == 1
    assert float(ledger.events[0].total_cost) == pytest.approx(0.00075)


async def test_seed_accounts_are_not_mutated():
    ledger = InMemoryTokenLedger.with_demo_accounts()
    ahmad = ledger.find_by_email("ahmad.fauzi@student.ac.id")

    await ledger.record_usage(ahmad.id, "ai_chat", 700)

    assert DEMO_ACCOUNTS[0].token_balance == 750
    assert InMemoryTokenLedger.with_demo_accounts().accounts[ahmad.id].token_balance == 750


async def test_rejections_leave_state_untouched():
    ledger, user_id = _ledger(balance=10)

    with pytest.raises(InsufficientBalance):
        await ledger.record_usage(user_id, "ai_chat", 11)
    with pytest.raises(InvalidAmount):
        await ledger.record_usage(user_id, "ai_chat", -1)
    with pytest.raises(UserNotFound):
        await ledger.record_usage(uuid.uuid4(), "ai_chat", 1)

    assert ledger.accounts[user_id].token_balance == 10
    assert ledger.events == []


async def test_concurrent_debits_drain_exactly():
    ledger, user_id = _ledger(balance=1_000)

    results = await asyncio.gather(
        *(ledger.record_usage(user_id, "ai_chat", 50) for _ in range(20)),
    )

    assert all(r.success for r in results)
    assert ledger.accounts[user_id].token_balance == 0
    assert len(ledger.events) == 20


async def test_monthly_usage_and_reset():
    ledger, user_id = _ledger(balance=1_000)
    await ledger.record_usage(user_id, "ai_chat", 300)
    await ledger.record_usage(user_id, "summarize", 100)

    summary = await ledger.get_monthly_usage(user_id, ledger.events[0].created_at.date())
    assert summary.total_tokens == 400
    assert summary.usage_by_action["ai_chat"].count == 1

    assert await ledger.reset_monthly_balance(user_id) == 1_000
