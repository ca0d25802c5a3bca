"""Brainstorming sessions — saved idea-graph workspaces and their article filters."""

import uuid
from datetime import timedelta

from fastapi import APIRouter, Query, status
from sqlalchemy import func
from sqlmodel import select

from mysre.api.deps import Session
from mysre.core.database import commit_or_fail
from mysre.core.exceptions import NotFoundError, UserNotFound
from mysre.models.article import Article
from mysre.models.base import utcnow
from mysre.models.brainstorming_session import (
    BrainstormingSession,
    BrainstormingSessionCreate,
    BrainstormingSessionRead,
    BrainstormingSessionUpdate,
)
from mysre.models.user import User, UserSummary
from mysre.models.writer_session import WriterSessionStats

router = APIRouter(prefix="/brainstorming-sessions", tags=["brainstorming-sessions"])

RECENT_WINDOW = timedelta(days=30)
ACTIVE_WINDOW = timedelta(days=7)


def _to_read(bs: BrainstormingSession, owner: User | None = None) -> BrainstormingSessionRead:
    return BrainstormingSessionRead(
        id=bs.id,
        title=bs.title,
        description=bs.description,
        user_id=bs.user_id,
        cover_color=bs.cover_color,
        last_activity=bs.last_activity,
        selected_filter_articles=bs.selected_filter_articles,
        last_selected_node_id=bs.last_selected_node_id,
        last_selected_edge_id=bs.last_selected_edge_id,
        graph_filters=bs.graph_filters,
        created_at=bs.created_at,
        updated_at=bs.updated_at,
        user=UserSummary.model_validate(owner) if owner is not None else None,
    )


@router.get("", response_model=list[BrainstormingSessionRead])
async def list_brainstorming_sessions(
    session: Session,
    user_id: uuid.UUID | None = Query(None, alias="userId"),
) -> list[BrainstormingSessionRead]:
    stmt = (
        select(BrainstormingSession, User)
        .join(User, BrainstormingSession.user_id == User.id)
        .order_by(BrainstormingSession.last_activity.desc())  # type: ignore[union-attr]
    )
    if user_id is not None:
        stmt = stmt.where(BrainstormingSession.user_id == user_id)
    rows = (await session.execute(stmt)).all()
    return [_to_read(bs, owner) for bs, owner in rows]


@router.post("", response_model=BrainstormingSessionRead, status_code=status.HTTP_201_CREATED)
async def create_brainstorming_session(
    body: BrainstormingSessionCreate, session: Session,
) -> BrainstormingSessionRead:
    owner = await session.get(User, body.user_id)
    if owner is None:
        raise UserNotFound(body.user_id)

    bs = BrainstormingSession(
        **body.model_dump(exclude={"selected_filter_articles"}),
        selected_filter_articles=list(dict.fromkeys(str(a) for a in body.selected_filter_articles)),
    )
    session.add(bs)
    await commit_or_fail(session)
    await session.refresh(bs)
    return _to_read(bs, owner)


@router.get("/stats", response_model=WriterSessionStats)
async def get_brainstorming_session_stats(
    session: Session,
    user_id: uuid.UUID | None = Query(None, alias="userId"),
) -> WriterSessionStats:
    """Same windows as the writer-session stats: created in 30 days, active in 7."""
    now = utcnow()
    scope = [BrainstormingSession.user_id == user_id] if user_id is not None else []

    async def _count(*conditions) -> int:
        return (await session.execute(
            select(func.count()).select_from(BrainstormingSession).where(*scope, *conditions)
        )).scalar_one()

    return WriterSessionStats(
        total_sessions=await _count(),
        recent_sessions=await _count(BrainstormingSession.created_at >= now - RECENT_WINDOW),
        active_sessions=await _count(BrainstormingSession.last_activity >= now - ACTIVE_WINDOW),
    )


@router.get("/{session_id}", response_model=BrainstormingSessionRead)
async def get_brainstorming_session(
    session_id: uuid.UUID, session: Session,
) -> BrainstormingSessionRead:
    bs = await _get_or_404(session_id, session)
    return _to_read(bs, await session.get(User, bs.user_id))


@router.patch("/{session_id}", response_model=BrainstormingSessionRead)
async def update_brainstorming_session(
    session_id: uuid.UUID, body: BrainstormingSessionUpdate, session: Session,
) -> BrainstormingSessionRead:
    bs = await _get_or_404(session_id, session)
    update_data = body.model_dump(exclude_unset=True)
    if "selected_filter_articles" in update_data:
        update_data["selected_filter_articles"] = list(dict.fromkeys(
            str(a) for a in update_data["selected_filter_articles"]
        ))
    for field, value in update_data.items():
        setattr(bs, field, value)

    bs.updated_at = utcnow()
    return await _save(bs, session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_brainstorming_session(session_id: uuid.UUID, session: Session) -> None:
    bs = await _get_or_404(session_id, session)
    await session.delete(bs)
    await commit_or_fail(session)


@router.post("/{session_id}/activity", response_model=BrainstormingSessionRead)
async def touch_brainstorming_session(
    session_id: uuid.UUID, session: Session,
) -> BrainstormingSessionRead:
    bs = await _get_or_404(session_id, session)
    bs.last_activity = bs.updated_at = utcnow()
    return await _save(bs, session)


# ── Article filter ───────────────────────────────────────────

@router.put("/{session_id}/filter-articles/{article_id}", response_model=BrainstormingSessionRead)
async def add_article_to_filter(
    session_id: uuid.UUID, article_id: uuid.UUID, session: Session,
) -> BrainstormingSessionRead:
    """Idempotent; adding an article already in the filter only bumps activity."""
    bs = await _get_or_404(session_id, session)
    if await session.get(Article, article_id) is None:
        raise NotFoundError("Article not found")

    if str(article_id) not in bs.selected_filter_articles:
        # Reassign so the JSON column is flagged dirty
        bs.selected_filter_articles = [*bs.selected_filter_articles, str(article_id)]
    bs.last_activity = bs.updated_at = utcnow()
    return await _save(bs, session)


@router.delete(
    "/{session_id}/filter-articles/{article_id}", response_model=BrainstormingSessionRead,
)
async def remove_article_from_filter(
    session_id: uuid.UUID, article_id: uuid.UUID, session: Session,
) -> BrainstormingSessionRead:
    bs = await _get_or_404(session_id, session)
    bs.selected_filter_articles = [a for a in bs.selected_filter_articles if a != str(article_id)]
    bs.last_activity = bs.updated_at = utcnow()
    return await _save(bs, session)


async def _save(bs: BrainstormingSession, session) -> BrainstormingSessionRead:
    session.add(bs)
    await commit_or_fail(session)
    await session.refresh(bs)
    return _to_read(bs, await session.get(User, bs.user_id))


async def _get_or_404(session_id: uuid.UUID, session) -> BrainstormingSession:
    bs = await session.get(BrainstormingSession, session_id)
    if bs is None:
        raise NotFoundError("Brainstorming session not found")
    return bs
