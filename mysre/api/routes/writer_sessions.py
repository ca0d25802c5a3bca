"""Writer sessions — draft workspaces, most recently active first."""

import uuid
from datetime import timedelta

from fastapi import APIRouter, Query, status
from sqlalchemy import func, update
from sqlmodel import select

from mysre.api.deps import Session
from mysre.core.database import commit_or_fail
from mysre.core.exceptions import NotFoundError, UserNotFound
from mysre.models.article import Article
from mysre.models.base import utcnow
from mysre.models.user import User, UserSummary
from mysre.models.writer_session import (
    WriterSession,
    WriterSessionCreate,
    WriterSessionRead,
    WriterSessionStats,
    WriterSessionUpdate,
)

router = APIRouter(prefix="/writer-sessions", tags=["writer-sessions"])

RECENT_WINDOW = timedelta(days=30)
ACTIVE_WINDOW = timedelta(days=7)


def _to_read(ws: WriterSession, owner: User | None = None) -> WriterSessionRead:
    return WriterSessionRead(
        id=ws.id,
        title=ws.title,
        description=ws.description,
        user_id=ws.user_id,
        cover_color=ws.cover_color,
        last_activity=ws.last_activity,
        created_at=ws.created_at,
        updated_at=ws.updated_at,
        user=UserSummary.model_validate(owner) if owner is not None else None,
    )


@router.get("", response_model=list[WriterSessionRead])
async def list_writer_sessions(
    session: Session,
    user_id: uuid.UUID | None = Query(None, alias="userId"),
) -> list[WriterSessionRead]:
    stmt = (
        select(WriterSession, User)
        .join(User, WriterSession.user_id == User.id)
        .order_by(WriterSession.last_activity.desc())  # type: ignore[union-attr]
    )
    if user_id is not None:
        stmt = stmt.where(WriterSession.user_id == user_id)
    rows = (await session.execute(stmt)).all()
    return [_to_read(ws, owner) for ws, owner in rows]


@router.post("", response_model=WriterSessionRead, status_code=status.HTTP_201_CREATED)
async def create_writer_session(body: WriterSessionCreate, session: Session) -> WriterSessionRead:
    owner = await session.get(User, body.user_id)
    if owner is None:
        raise UserNotFound(body.user_id)

    ws = WriterSession(**body.model_dump())
    session.add(ws)
    await commit_or_fail(session)
    await session.refresh(ws)
    return _to_read(ws, owner)


@router.get("/stats", response_model=WriterSessionStats)
async def get_writer_session_stats(
    session: Session,
    user_id: uuid.UUID | None = Query(None, alias="userId"),
) -> WriterSessionStats:
    """Total sessions, sessions created in the last 30 days, active in the last 7."""
    now = utcnow()
    scope = [WriterSession.user_id == user_id] if user_id is not None else []

    async def _count(*conditions) -> int:
        return (await session.execute(
            select(func.count()).select_from(WriterSession).where(*scope, *conditions)
        )).scalar_one()

    return WriterSessionStats(
        total_sessions=await _count(),
        recent_sessions=await _count(WriterSession.created_at >= now - RECENT_WINDOW),
        active_sessions=await _count(WriterSession.last_activity >= now - ACTIVE_WINDOW),
    )


@router.get("/{session_id}", response_model=WriterSessionRead)
async def get_writer_session(session_id: uuid.UUID, session: Session) -> WriterSessionRead:
    ws = await _get_or_404(session_id, session)
    return _to_read(ws, await session.get(User, ws.user_id))


@router.patch("/{session_id}", response_model=WriterSessionRead)
async def update_writer_session(
    session_id: uuid.UUID, body: WriterSessionUpdate, session: Session,
) -> WriterSessionRead:
    ws = await _get_or_404(session_id, session)
    for field, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(ws, field, value)

    ws.updated_at = utcnow()
    session.add(ws)
    await commit_or_fail(session)
    await session.refresh(ws)
    return _to_read(ws, await session.get(User, ws.user_id))


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_writer_session(session_id: uuid.UUID, session: Session) -> None:
    ws = await _get_or_404(session_id, session)
    # Articles outlive the draft they were attached to.
    await session.execute(
        update(Article).where(Article.session_id == session_id).values(session_id=None)
    )
    await session.delete(ws)
    await commit_or_fail(session)


@router.post("/{session_id}/activity", response_model=WriterSessionRead)
async def touch_writer_session(session_id: uuid.UUID, session: Session) -> WriterSessionRead:
    ws = await _get_or_404(session_id, session)
    ws.last_activity = ws.updated_at = utcnow()
    session.add(ws)
    await commit_or_fail(session)
    await session.refresh(ws)
    return _to_read(ws, await session.get(User, ws.user_id))


async def _get_or_404(session_id: uuid.UUID, session) -> WriterSession:
    ws = await session.get(WriterSession, session_id)
    if ws is None:
        raise NotFoundError("Writer session not found")
    return ws
