"""Tests for login and the current-session endpoint."""

import uuid

import pytest
from httpx import AsyncClient

from mysre.core.security import create_jwt

PASSWORD = "password123"


@pytest.mark.asyncio
async def test_login_returns_token_and_user(client: AsyncClient, make_user):
    user = await make_user(name="Rina", email="rina@univ.ac.id")

    resp = await client.post("/api/auth/login", json={"email": "rina@univ.ac.id", "password": PASSWORD})
    assert resp.status_code == 200
    data = resp.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == str(user.id)
    assert "password_hash" not in data["user"]

    resp = await client.get(
        "/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"},
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["name"] == "Rina"


@pytest.mark.asyncio
@pytest.mark.parametrize("email, password", [
    ("rina@univ.ac.id", "wrong-password"),
    ("nobody@univ.ac.id", PASSWORD),
])
async def test_login_rejects_bad_credentials(client: AsyncClient, make_user, email, password):
    await make_user(email="rina@univ.ac.id")

    resp = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_me_requires_valid_token(client: AsyncClient):
    resp = await client.get("/api/auth/me")
    assert resp.status_code in (401, 403)

    resp = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_rejects_token_for_deleted_user(client: AsyncClient):
    token = create_jwt(str(uuid.uuid4()), "USER")

    resp = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401
