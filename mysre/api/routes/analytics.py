"""User interaction analytics — event capture and per-user activity summaries."""

import json
import uuid
from collections import Counter
from datetime import timedelta

from fastapi import APIRouter, Query, status
from pydantic import BaseModel
from sqlmodel import select

from mysre.api.deps import Session
from mysre.core.database import commit_or_fail
from mysre.core.exceptions import UserNotFound
from mysre.models.analytics_event import (
    ActionCount,
    AnalyticsEvent,
    AnalyticsEventCreate,
    AnalyticsEventRead,
    DailyActivity,
    HourlyActivity,
    UserActivitySummary,
)
from mysre.models.base import utcnow
from mysre.models.user import User

router = APIRouter(prefix="/analytics", tags=["analytics"])

# Average events per day at or above which a user counts as medium / high engagement
MEDIUM_ENGAGEMENT = 1.0
HIGH_ENGAGEMENT = 5.0


class EventRecorded(BaseModel):
    success: bool = True
    data: AnalyticsEventRead


def engagement_level(total_events: int, days: int) -> str:
    per_day = total_events / days if days else 0.0
    if per_day >= HIGH_ENGAGEMENT:
        return "high"
    if per_day >= MEDIUM_ENGAGEMENT:
        return "medium"
    return "low"


def _to_read(event: AnalyticsEvent) -> AnalyticsEventRead:
    return AnalyticsEventRead(
        id=event.id,
        user_id=event.user_id,
        action=event.action,
        document=event.document,
        metadata=json.loads(event.metadata_json or "{}"),
        created_at=event.created_at,
    )


@router.post("/events", response_model=EventRecorded, status_code=status.HTTP_201_CREATED)
async def record_event(body: AnalyticsEventCreate, session: Session) -> EventRecorded:
    if await session.get(User, body.user_id) is None:
        raise UserNotFound(body.user_id)

    event = AnalyticsEvent(
        user_id=body.user_id,
        action=body.action,
        document=body.document,
        metadata_json=json.dumps(body.metadata, default=str),
    )
    session.add(event)
    await commit_or_fail(session)
    await session.refresh(event)
    return EventRecorded(data=_to_read(event))


@router.get("/users/{user_id}", response_model=UserActivitySummary)
async def get_user_activity(
    user_id: uuid.UUID,
    session: Session,
    days: int = Query(30, ge=1, le=365),
) -> UserActivitySummary:
    """Breakdown of a user's events over the last ``days`` days."""
    if await session.get(User, user_id) is None:
        raise UserNotFound(user_id)

    since = utcnow() - timedelta(days=days)
    rows = (await session.execute(
        select(AnalyticsEvent.action, AnalyticsEvent.created_at)
        .where(AnalyticsEvent.user_id == user_id, AnalyticsEvent.created_at >= since)
    )).all()

    by_action = Counter(action for action, _ in rows)
    daily = Counter(created_at.strftime("%Y-%m-%d") for _, created_at in rows)
    hourly = Counter(created_at.hour for _, created_at in rows)

    return UserActivitySummary(
        user_id=user_id,
        days=days,
        total_events=len(rows),
        by_action=[
            ActionCount(action=action, count=count)
            for action, count in sorted(by_action.items(), key=lambda kv: (-kv[1], kv[0]))
        ],
        daily=[DailyActivity(date=day, count=count) for day, count in sorted(daily.items())],
        hourly=[HourlyActivity(hour=hour, count=hourly.get(hour, 0)) for hour in range(24)],
        engagement_level=engagement_level(len(rows), days),
    )
