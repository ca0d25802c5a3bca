"""Tests for the /api/billing endpoints."""

import re
import uuid

import pytest
from httpx import AsyncClient
from sqlmodel import select

from mysre.core.pricing import Tier
from mysre.models.base import utcnow
from mysre.models.user import User, UserRole


async def _debit(client: AsyncClient, user_id, tokens: int, action: str = "ai_chat"):
    return await client.post("/api/billing/token-usage", json={
        "userId": str(user_id),
        "action": action,
        "tokensUsed": tokens,
    })


# ── Token usage ──────────────────────────────────────────────

@pytest.mark.asyncio
async def test_record_usage_pro_user(client: AsyncClient, make_user):
    user = await make_user(tier=Tier.PRO, token_balance=8_500)

    resp = await client.post("/api/billing/token-usage", json={
        "userId": str(user.id),
        "action": "content_generation",
        "tokensUsed": 500,
        "context": "draft intro",
        "metadata": {"section": 1},
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["remaining_balance"] == 8_000
    assert "low_balance_warning" not in data

    resp = await client.get("/api/billing/token-usage", params={"userId": str(user.id)})
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["token_balance"] == 8_000
    usage = body["monthlyUsage"]
    assert usage["total_tokens"] == 500
    assert usage["total_cost"] == pytest.approx(0.00075)
    assert usage["usage_by_action"]["content_generation"]["count"] == 1


@pytest.mark.asyncio
async def test_record_usage_low_balance_warning(client: AsyncClient, make_user):
    user = await make_user(token_balance=150)

    resp = await _debit(client, user.id, 100)
    assert resp.status_code == 200
    warning = resp.json()["low_balance_warning"]
    assert warning["remaining_balance"] == 50
    assert warning["threshold"] == 100


@pytest.mark.asyncio
async def test_record_usage_insufficient_balance(client: AsyncClient, make_user):
    user = await make_user(token_balance=100)
    user_id = user.id

    resp = await _debit(client, user_id, 500)
    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "InsufficientBalance"
    assert data["required"] == 500
    assert data["available"] == 100

    resp = await client.get(f"/api/users/{user_id}/billing")
    assert resp.json()["token_balance"] == 100


@pytest.mark.asyncio
@pytest.mark.parametrize("tokens", [0, -10])
async def test_record_usage_rejects_non_positive(client: AsyncClient, make_user, tokens):
    user = await make_user(token_balance=100)

    resp = await _debit(client, user.id, tokens)
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidAmount"


@pytest.mark.asyncio
async def test_record_usage_missing_fields(client: AsyncClient):
    resp = await client.post("/api/billing/token-usage", json={"action": "ai_chat"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_record_usage_unknown_user(client: AsyncClient):
    resp = await _debit(client, uuid.uuid4(), 10)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "User not found"


@pytest.mark.asyncio
async def test_get_usage_validation(client: AsyncClient, make_user):
    user = await make_user(token_balance=10)

    assert (await client.get("/api/billing/token-usage")).status_code == 400
    resp = await client.get("/api/billing/token-usage", params={"userId": str(user.id), "month": "soon"})
    assert resp.status_code == 400
    resp = await client.get("/api/billing/token-usage", params={"userId": str(uuid.uuid4())})
    assert resp.status_code == 404

    resp = await client.get("/api/billing/token-usage", params={"userId": str(user.id), "month": "2020-01"})
    assert resp.status_code == 200
    assert resp.json()["monthlyUsage"] == {"total_tokens": 0, "total_cost": 0.0, "usage_by_action": {}}


# ── Analytics endpoints ──────────────────────────────────────

@pytest.mark.asyncio
async def test_stats_endpoint_and_cache_invalidation(client: AsyncClient, make_user):
    user = await make_user(tier=Tier.BASIC, token_balance=1_000)

    resp = await client.get("/api/billing/stats")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["totalUsers"] == 1
    assert data["monthlyRevenue"] == 0
    assert set(data["revenueByTier"]) == {"basic", "pro", "enterprise"}

    await _debit(client, user.id, 500)

    data = (await client.get("/api/billing/stats")).json()["data"]
    assert data["monthlyRevenue"] == pytest.approx(0.001)
    assert data["topSpendingUsers"][0]["tokens_used"] == 500
    assert data["usageGrowth"]["growth_rate"] == 0


@pytest.mark.asyncio
async def test_users_billing_endpoint(client: AsyncClient, make_user):
    await make_user(role=UserRole.ADMIN)
    user = await make_user(token_balance=1_000)
    await _debit(client, user.id, 900)

    resp = await client.get("/api/billing/users", params={"granularity": "month"})
    assert resp.status_code == 200
    rows = resp.json()["data"]
    assert len(rows) == 1
    row = rows[0]
    assert row["currentMonthUsage"]["total_tokens"] == 900
    assert row["tierRecommendation"]["recommended_tier"] == "pro"
    assert re.fullmatch(r"\d{4}-\d{2}", row["usageTrend"][0]["date"])
    assert "password_hash" not in row["user"]

    resp = await client.get("/api/billing/users", params={"granularity": "week"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_pricing_table(client: AsyncClient):
    resp = await client.get("/api/billing/pricing")
    assert resp.status_code == 200
    tiers = resp.json()["tiers"]
    assert tiers["pro"]["cost_per_token"] == pytest.approx(0.0000015)
    assert tiers["enterprise"]["monthly_token_limit"] == 100_000


# ── Balance management ───────────────────────────────────────

@pytest.mark.asyncio
async def test_top_up_is_a_pending_intent(client: AsyncClient, make_user):
    user = await make_user(token_balance=10)
    user_id = user.id

    resp = await client.post("/api/billing/top-up", json={
        "userId": str(user_id), "amount": 1_000, "method": "bank_transfer",
    })
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "pending"
    assert data["transactionId"].startswith("topup_")
    assert data["amount"] == 1_000

    resp = await client.get(f"/api/users/{user_id}/billing")
    assert resp.json()["token_balance"] == 10

    resp = await client.post("/api/billing/top-up", json={"userId": str(user_id), "amount": 0})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_admin_routes_require_admin(client: AsyncClient, make_user, auth_headers):
    user = await make_user(token_balance=10)
    body = {"userId": str(user.id), "tier": "pro"}

    assert (await client.put("/api/billing/tier", json=body)).status_code in (401, 403)
    resp = await client.put("/api/billing/tier", json=body, headers=auth_headers(user))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_balance_operations(client: AsyncClient, session, make_user, auth_headers):
    admin = await make_user(role=UserRole.ADMIN)
    user = await make_user(tier=Tier.BASIC, token_balance=10)
    headers = auth_headers(admin)
    user_id = str(user.id)

    resp = await client.put("/api/billing/tier", json={"userId": user_id, "tier": "pro"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["user"]["tier"] == "pro"
    assert resp.json()["user"]["monthly_token_limit"] == 10_000

    resp = await client.put("/api/billing/tier", json={"userId": user_id, "tier": "gold"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidTier"

    resp = await client.post("/api/billing/reset-balance", json={"userId": user_id}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["user"]["token_balance"] == 10_000

    resp = await client.post("/api/billing/credit", json={"userId": user_id, "amount": 500}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["user"]["token_balance"] == 10_500

    resp = await client.post(
        "/api/billing/reset-balance", json={"userId": str(uuid.uuid4())}, headers=headers,
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_billing_records_flow(client: AsyncClient, make_user, auth_headers):
    admin = await make_user(role=UserRole.ADMIN)
    user = await make_user(token_balance=1_000)
    headers = auth_headers(admin)
    await _debit(client, user.id, 400)

    resp = await client.post("/api/billing/records", json={"period": f"{utcnow():%Y-%m}"}, headers=headers)
    assert resp.status_code == 201
    records = resp.json()["data"]
    assert len(records) == 1
    assert records[0]["tokens_used"] == 400
    assert records[0]["payment_status"] == "pending"

    record_id = records[0]["id"]
    resp = await client.patch(
        f"/api/billing/records/{record_id}", json={"payment_status": "paid"}, headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["payment_status"] == "paid"
    assert resp.json()["data"]["payment_date"] is not None

    resp = await client.patch(
        f"/api/billing/records/{record_id}", json={"payment_status": "refunded"}, headers=headers,
    )
    assert resp.status_code == 400

    resp = await client.post("/api/billing/records", json={"period": "13-2025"}, headers=headers)
    assert resp.status_code == 400


# ── Simulation ───────────────────────────────────────────────

@pytest.mark.asyncio
async def test_simulate_demo_user(client: AsyncClient, session):
    resp = await client.post("/api/billing/simulate", json={
        "userEmail": "siti.nurhaliza@student.ac.id",
        "action": "content_generation",
        "tokensUsed": 500,
    })
    assert resp.status_code == 200
    sim = resp.json()["simulation_data"]
    assert sim["remaining_balance"] == 8_000
    assert sim["cost_breakdown"]["tier"] == "pro"
    assert sim["cost_breakdown"]["total_cost"] == pytest.approx(0.00075)

    # Nothing persisted, and each simulation starts from the seeded balance
    assert (await session.execute(select(User))).scalars().all() == []
    resp = await client.post("/api/billing/simulate", json={
        "userEmail": "siti.nurhaliza@student.ac.id", "action": "ai_chat", "tokensUsed": 500,
    })
    assert resp.json()["simulation_data"]["remaining_balance"] == 8_000


@pytest.mark.asyncio
async def test_simulate_errors(client: AsyncClient):
    resp = await client.post("/api/billing/simulate", json={
        "userEmail": "nobody@student.ac.id", "action": "ai_chat", "tokensUsed": 5,
    })
    assert resp.status_code == 404

    resp = await client.post("/api/billing/simulate", json={
        "userEmail": "ahmad.fauzi@student.ac.id", "action": "ai_chat", "tokensUsed": 751,
    })
    assert resp.status_code == 400
    assert resp.json()["available"] == 750
