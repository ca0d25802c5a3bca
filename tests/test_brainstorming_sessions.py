"""Tests for brainstorming session endpoints and the article filter."""

import uuid
from datetime import timedelta

import pytest
from httpx import AsyncClient

from mysre.models.article import Article
from mysre.models.base import utcnow
from mysre.models.brainstorming_session import BrainstormingSession


async def _create(client: AsyncClient, user_id, title: str = "Literature map", **fields):
    resp = await client.post("/api/brainstorming-sessions", json={
        "title": title, "userId": str(user_id), **fields,
    })
    assert resp.status_code == 201
    return resp.json()


async def _article(session, title: str = "Paper") -> str:
    article = Article(title=title, file_path=f"papers/{uuid.uuid4().hex}.pdf")
    session.add(article)
    await session.commit()
    return str(article.id)


@pytest.mark.asyncio
async def test_create_brainstorming_session(client: AsyncClient, make_user):
    user = await make_user(name="Rina")

    bs = await _create(client, user.id, graphFilters={"year": 2024}, lastSelectedNodeId="n-1")
    assert bs["coverColor"] == "#4c6ef5"
    assert bs["selectedFilterArticles"] == []
    assert bs["graphFilters"] == {"year": 2024}
    assert bs["lastSelectedNodeId"] == "n-1"
    assert bs["user"]["name"] == "Rina"

    resp = await client.post("/api/brainstorming-sessions", json={"title": "x", "userId": str(uuid.uuid4())})
    assert resp.status_code == 404
    resp = await client.post("/api/brainstorming-sessions", json={"title": "", "userId": str(user.id)})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_list_most_recently_active_first(client: AsyncClient, make_user):
    alice = await make_user()
    bob = await make_user()
    first = await _create(client, alice.id, "First")
    await _create(client, alice.id, "Second")
    await _create(client, bob.id, "Bob's")

    resp = await client.post(f"/api/brainstorming-sessions/{first['id']}/activity")
    assert resp.status_code == 200

    resp = await client.get("/api/brainstorming-sessions", params={"userId": str(alice.id)})
    assert [bs["title"] for bs in resp.json()] == ["First", "Second"]
    assert len((await client.get("/api/brainstorming-sessions")).json()) == 3


@pytest.mark.asyncio
async def test_patch_clears_graph_state(client: AsyncClient, make_user):
    user = await make_user()
    bs = await _create(client, user.id, lastSelectedNodeId="n-1", graphFilters={"a": 1})

    resp = await client.patch(f"/api/brainstorming-sessions/{bs['id']}", json={
        "title": "Renamed", "lastSelectedNodeId": None, "graphFilters": None,
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["title"] == "Renamed"
    assert data["lastSelectedNodeId"] is None
    assert data["graphFilters"] is None

    resp = await client.patch(f"/api/brainstorming-sessions/{bs['id']}", json={"title": None})
    assert resp.status_code == 400
    resp = await client.patch(f"/api/brainstorming-sessions/{uuid.uuid4()}", json={"title": "x"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_article_filter_add_and_remove(client: AsyncClient, session, make_user):
    user = await make_user()
    bs = await _create(client, user.id)
    first = await _article(session, "First")
    second = await _article(session, "Second")
    url = f"/api/brainstorming-sessions/{bs['id']}/filter-articles"

    assert (await client.put(f"{url}/{first}")).status_code == 200
    assert (await client.put(f"{url}/{second}")).status_code == 200
    resp = await client.put(f"{url}/{first}")
    assert resp.json()["selectedFilterArticles"] == [first, second]

    resp = await client.put(f"{url}/{uuid.uuid4()}")
    assert resp.status_code == 404

    resp = await client.delete(f"{url}/{first}")
    assert resp.status_code == 200
    assert resp.json()["selectedFilterArticles"] == [second]

    # Removing an id that is not in the filter is a no-op
    resp = await client.delete(f"{url}/{uuid.uuid4()}")
    assert resp.json()["selectedFilterArticles"] == [second]


@pytest.mark.asyncio
async def test_stats(client: AsyncClient, session, make_user):
    user = await make_user()
    now = utcnow()
    session.add_all([
        BrainstormingSession(user_id=user.id, title="fresh"),
        BrainstormingSession(
            user_id=user.id, title="stale",
            created_at=now - timedelta(days=60), last_activity=now - timedelta(days=20),
        ),
    ])
    await session.commit()

    resp = await client.get("/api/brainstorming-sessions/stats", params={"userId": str(user.id)})
    assert resp.status_code == 200
    assert resp.json() == {"totalSessions": 2, "recentSessions": 1, "activeSessions": 1}


@pytest.mark.asyncio
async def test_delete(client: AsyncClient, make_user):
    user = await make_user()
    bs = await _create(client, user.id)

    resp = await client.delete(f"/api/brainstorming-sessions/{bs['id']}")
    assert resp.status_code == 204
    resp = await client.get(f"/api/brainstorming-sessions/{bs['id']}")
    assert resp.status_code == 404
