"""Users CRUD — filtered listing plus the last-admin deletion guard."""

import logging
import uuid

from fastapi import APIRouter, Query, status
from pydantic import BaseModel
from sqlalchemy import delete, func, or_, update
from sqlmodel import select

from mysre.api.deps import Page, Session
from mysre.core import cache
from mysre.core.database import commit_or_fail
from mysre.core.exceptions import (
    LastAdminDeletion,
    MySREError,
    UserHasBillingHistory,
    UserNotFound,
    ValidationError,
)
from mysre.core.pricing import TIER_MONTHLY_LIMITS
from mysre.core.security import hash_password
from mysre.models.analytics_event import AnalyticsEvent
from mysre.models.article import Article
from mysre.models.assignment import Assignment, AssignmentSubmission
from mysre.models.base import CamelModel, utcnow
from mysre.models.billing_record import BillingRecord
from mysre.models.brainstorming_session import BrainstormingSession
from mysre.models.usage_event import UsageEvent
from mysre.models.user import (
    User,
    UserBillingRead,
    UserCreate,
    UserGroup,
    UserRead,
    UserRole,
    UserUpdate,
)
from mysre.models.writer_session import WriterSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


# ── Schemas ──────────────────────────────────────────────────

class UserList(CamelModel):
    users: list[UserRead]
    total: int
    page: int
    limit: int
    total_pages: int


class UserResponse(BaseModel):
    message: str | None = None
    user: UserRead


class MessageResponse(BaseModel):
    message: str


# ── Routes ───────────────────────────────────────────────────

@router.get("", response_model=UserList)
async def list_users(
    session: Session,
    page: Page,
    role: UserRole | None = Query(None),
    group: UserGroup | None = Query(None),
    search: str | None = Query(None),
) -> UserList:
    """Newest first. ``search`` matches name, email or NIM case-insensitively."""
    conditions = []
    if role is not None:
        conditions.append(User.role == role)
    if group is not None:
        conditions.append(User.group == group)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            User.name.ilike(pattern),  # type: ignore[attr-defined]
            User.email.ilike(pattern),  # type: ignore[attr-defined]
            User.nim.ilike(pattern),  # type: ignore[union-attr]
        ))

    total = (await session.execute(
        select(func.count()).select_from(User).where(*conditions)
    )).scalar_one()

    stmt = (
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc())  # type: ignore[union-attr]
        .offset(page.offset)
        .limit(page.limit)
    )
    users = (await session.execute(stmt)).scalars().all()

    return UserList(
        users=[UserRead.model_validate(u) for u in users],
        total=total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages(total),
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, session: Session) -> UserResponse:
    await _ensure_email_free(body.email, session)

    user = User(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        role=body.role,
        group=body.group,
        nim=body.nim,
        avatar_url=body.avatar_url,
        tier=body.tier,
        token_balance=body.token_balance,
        monthly_token_limit=TIER_MONTHLY_LIMITS[body.tier],
    )
    session.add(user)
    await commit_or_fail(session)
    await session.refresh(user)
    cache.invalidate_prefix(("billing",))
    logger.info("Created user %s (%s)", user.id, user.role)
    return UserResponse(message="User created", user=UserRead.model_validate(user))


@router.put("", response_model=UserResponse)
async def update_user(body: UserUpdate, session: Session) -> UserResponse:
    """Profile update. Billing fields are owned by the ledger and not accepted here."""
    user = await _get_or_404(body.id, session)

    update_data = body.model_dump(exclude_unset=True, exclude={"id"})
    if update_data.get("email") and update_data["email"] != user.email:
        await _ensure_email_free(update_data["email"], session)
    if "password" in update_data:
        password = update_data.pop("password")
        if password:
            user.password_hash = hash_password(password)
    for field, value in update_data.items():
        setattr(user, field, value)

    user.updated_at = utcnow()
    session.add(user)
    await commit_or_fail(session)
    await session.refresh(user)
    cache.invalidate_prefix(("billing",))
    return UserResponse(message="User updated", user=UserRead.model_validate(user))


@router.delete("", response_model=MessageResponse)
async def delete_user(
    session: Session,
    user_id: uuid.UUID | None = Query(None, alias="id"),
) -> MessageResponse:
    """Remove a user and release the rows they own.

    Token usage and billing history are append-only, so a user with either
    is refused. Articles stay in the library without an owner, drafts and
    graph workspaces go with the user.
    """
    if user_id is None:
        raise ValidationError("User ID is required")
    user = await _get_or_404(user_id, session)

    try:
        if user.role == UserRole.ADMIN:
            # Admin rows stay locked until commit
            admin_ids = (await session.execute(
                select(User.id).where(User.role == UserRole.ADMIN).with_for_update()
            )).scalars().all()
            if len(admin_ids) <= 1:
                raise LastAdminDeletion()

        if await _has_billing_history(user_id, session):
            raise UserHasBillingHistory()

        await _release_owned_rows(user_id, session)
        await session.delete(user)
        await commit_or_fail(session)
    except MySREError:
        await session.rollback()
        raise

    cache.invalidate_prefix(("billing",))
    logger.info("Deleted user %s", user_id)
    return MessageResponse(message="User deleted")


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: uuid.UUID, session: Session) -> UserResponse:
    return UserResponse(user=UserRead.model_validate(await _get_or_404(user_id, session)))


@router.get("/{user_id}/billing", response_model=UserBillingRead)
async def get_user_billing(user_id: uuid.UUID, session: Session) -> UserBillingRead:
    return UserBillingRead.model_validate(await _get_or_404(user_id, session))


# ── Internal helpers ──────────────────────────────────────────

async def _get_or_404(user_id: uuid.UUID, session) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise UserNotFound(user_id)
    return user


async def _ensure_email_free(email: str, session) -> None:
    existing = (await session.execute(
        select(User.id).where(User.email == email)
    )).scalar_one_or_none()
    if existing is not None:
        raise ValidationError("Email already registered")


async def _has_billing_history(user_id: uuid.UUID, session) -> bool:
    for model in (UsageEvent, BillingRecord):
        found = (await session.execute(
            select(model.id).where(model.user_id == user_id).limit(1)
        )).scalar_one_or_none()
        if found is not None:
            return True
    return False


async def _release_owned_rows(user_id: uuid.UUID, session) -> None:
    owned_drafts = select(WriterSession.id).where(WriterSession.user_id == user_id)
    await session.execute(
        update(Article)
        .where(Article.session_id.in_(owned_drafts))  # type: ignore[union-attr]
        .values(session_id=None)
    )
    await session.execute(update(Article).where(Article.user_id == user_id).values(user_id=None))
    await session.execute(
        update(Assignment).where(Assignment.created_by == user_id).values(created_by=None)
    )
    for model, column in (
        (AssignmentSubmission, AssignmentSubmission.student_id),
        (AnalyticsEvent, AnalyticsEvent.user_id),
        (BrainstormingSession, BrainstormingSession.user_id),
        (WriterSession, WriterSession.user_id),
    ):
        await session.execute(delete(model).where(column == user_id))
