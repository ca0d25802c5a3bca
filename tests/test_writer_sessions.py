"""Tests for writer session endpoints."""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient

from mysre.models.article import Article
from mysre.models.base import utcnow
from mysre.models.writer_session import WriterSession


async def _create(client: AsyncClient, user_id, title: str = "Thesis draft", **fields):
    resp = await client.post("/api/writer-sessions", json={
        "title": title, "userId": str(user_id), **fields,
    })
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.asyncio
async def test_create_writer_session(client: AsyncClient, make_user):
    user = await make_user(name="Sari")

    ws = await _create(client, user.id, description="Chapter 1", coverColor="#12ab34")
    assert ws["title"] == "Thesis draft"
    assert ws["coverColor"] == "#12ab34"
    assert ws["userId"] == str(user.id)
    assert ws["user"]["name"] == "Sari"


@pytest.mark.asyncio
async def test_create_validation(client: AsyncClient, make_user):
    user = await make_user()

    resp = await client.post("/api/writer-sessions", json={"title": "x", "userId": str(uuid.uuid4())})
    assert resp.status_code == 404

    resp = await client.post("/api/writer-sessions", json={
        "title": "x", "userId": str(user.id), "coverColor": "red",
    })
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_most_recently_active_first(client: AsyncClient, make_user):
    alice = await make_user()
    bob = await make_user()
    first = await _create(client, alice.id, "First")
    await _create(client, alice.id, "Second")
    await _create(client, bob.id, "Bob's")

    resp = await client.post(f"/api/writer-sessions/{first['id']}/activity")
    assert resp.status_code == 200

    resp = await client.get("/api/writer-sessions", params={"userId": str(alice.id)})
    assert [ws["title"] for ws in resp.json()] == ["First", "Second"]

    resp = await client.get("/api/writer-sessions")
    assert len(resp.json()) == 3


@pytest.mark.asyncio
async def test_patch_ignores_nulls(client: AsyncClient, make_user):
    user = await make_user()
    ws = await _create(client, user.id, description="keep me")

    resp = await client.patch(f"/api/writer-sessions/{ws['id']}", json={
        "title": "Renamed", "description": None,
    })
    assert resp.status_code == 200
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["description"] == "keep me"

    resp = await client.patch(f"/api/writer-sessions/{uuid.uuid4()}", json={"title": "x"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_stats(client: AsyncClient, session, make_user):
    user = await make_user()
    now = utcnow()
    session.add_all([
        WriterSession(user_id=user.id, title="fresh"),
        WriterSession(
            user_id=user.id, title="this month",
            created_at=now - timedelta(days=10), last_activity=now - timedelta(days=10),
        ),
        WriterSession(
            user_id=user.id, title="old",
            created_at=now - timedelta(days=90), last_activity=now - timedelta(days=3),
        ),
    ])
    await session.commit()

    resp = await client.get("/api/writer-sessions/stats", params={"userId": str(user.id)})
    assert resp.status_code == 200
    assert resp.json() == {"totalSessions": 3, "recentSessions": 2, "activeSessions": 2}

    resp = await client.get("/api/writer-sessions/stats", params={"userId": str(uuid.uuid4())})
    assert resp.json() == {"totalSessions": 0, "recentSessions": 0, "activeSessions": 0}


@pytest.mark.asyncio
async def test_delete_detaches_articles(client: AsyncClient, session, make_user):
    user = await make_user()
    ws = await _create(client, user.id)

    resp = await client.post("/api/articles", json={
        "title": "Attached", "filePath": "a.pdf", "sessionId": ws["id"],
    })
    article_id = resp.json()["article"]["id"]

    resp = await client.delete(f"/api/writer-sessions/{ws['id']}")
    assert resp.status_code == 204

    resp = await client.get(f"/api/writer-sessions/{ws['id']}")
    assert resp.status_code == 404

    resp = await client.get(f"/api/articles/{article_id}")
    assert resp.status_code == 200
    assert resp.json()["article"]["sessionId"] is None
    assert await session.get(Article, uuid.UUID(article_id)) is not None
