"""Article CRUD plus file upload into the ``uploads`` bucket."""

import logging
import uuid

from fastapi import APIRouter, Form, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy import func, or_
from sqlmodel import select

from mysre.api.deps import Page, Session, Storage
from mysre.core.database import commit_or_fail
from mysre.core.exceptions import (
    MySREError,
    NotFoundError,
    UserNotFound,
    ValidationError,
)
from mysre.models.article import (
    Article,
    ArticleCreate,
    ArticleList,
    ArticleRead,
    ArticleResponse,
    ArticleUpdate,
    UploadResult,
)
from mysre.models.base import utcnow
from mysre.models.user import User, UserSummary
from mysre.models.writer_session import WriterSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/articles", tags=["articles"])

UPLOAD_BUCKET = "uploads"


class ArticleDetail(BaseModel):
    article: ArticleRead


class MessageResponse(BaseModel):
    message: str


# ── Helpers ───────────────────────────────────────────────────

def _to_read(article: Article, owner: User | None = None) -> ArticleRead:
    return ArticleRead(
        id=article.id,
        title=article.title,
        file_path=article.file_path,
        user_id=article.user_id,
        session_id=article.session_id,
        abstract=article.abstract,
        author=article.author,
        doi=article.doi,
        keywords=article.keywords,
        year=article.year,
        created_at=article.created_at,
        updated_at=article.updated_at,
        user=UserSummary.model_validate(owner) if owner is not None else None,
    )


# ── Routes ───────────────────────────────────────────────────

@router.get("", response_model=ArticleList)
async def list_articles(
    session: Session,
    page: Page,
    user_id: uuid.UUID | None = Query(None, alias="userId"),
    search: str | None = Query(None),
    year: int | None = Query(None),
    author: str | None = Query(None),
) -> ArticleList:
    """Newest first. ``search`` matches title, abstract or keywords case-insensitively."""
    conditions = []
    if user_id is not None:
        conditions.append(Article.user_id == user_id)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            Article.title.ilike(pattern),  # type: ignore[attr-defined]
            Article.abstract.ilike(pattern),  # type: ignore[union-attr]
            Article.keywords.ilike(pattern),  # type: ignore[union-attr]
        ))
    if year is not None:
        conditions.append(Article.year == year)
    if author:
        conditions.append(Article.author.ilike(f"%{author}%"))  # type: ignore[union-attr]

    total = (await session.execute(
        select(func.count()).select_from(Article).where(*conditions)
    )).scalar_one()

    stmt = (
        select(Article, User)
        .outerjoin(User, Article.user_id == User.id)
        .where(*conditions)
        .order_by(Article.created_at.desc())  # type: ignore[union-attr]
        .offset(page.offset)
        .limit(page.limit)
    )
    rows = (await session.execute(stmt)).all()

    return ArticleList(
        articles=[_to_read(article, owner) for article, owner in rows],
        total=total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages(total),
    )


@router.post("", response_model=ArticleResponse, status_code=status.HTTP_201_CREATED)
async def create_article(body: ArticleCreate, session: Session) -> ArticleResponse:
    await _check_references(body.user_id, body.session_id, session)

    article = Article(**body.model_dump())
    session.add(article)
    await commit_or_fail(session)
    await session.refresh(article)
    logger.info("Created article %s", article.id)
    return ArticleResponse(message="Article created", article=await _read_with_owner(article, session))


@router.put("", response_model=ArticleResponse)
async def update_article(body: ArticleUpdate, session: Session) -> ArticleResponse:
    article = await _get_or_404(body.id, session)

    update_data = body.model_dump(exclude_unset=True, exclude={"id"})
    await _check_references(update_data.get("user_id"), update_data.get("session_id"), session)
    for field, value in update_data.items():
        setattr(article, field, value)

    article.updated_at = utcnow()
    session.add(article)
    await commit_or_fail(session)
    await session.refresh(article)
    return ArticleResponse(message="Article updated", article=await _read_with_owner(article, session))


@router.delete("", response_model=MessageResponse)
async def delete_article(
    session: Session,
    storage: Storage,
    article_id: uuid.UUID | None = Query(None, alias="id"),
) -> MessageResponse:
    if article_id is None:
        raise ValidationError("Article ID is required")
    article = await _get_or_404(article_id, session)
    file_path = article.file_path

    await session.delete(article)
    await commit_or_fail(session)

    # The row is gone either way; a missing or locked file is not an error.
    try:
        await storage.delete(UPLOAD_BUCKET, file_path)
    except (MySREError, OSError) as exc:
        logger.warning("Could not delete %s/%s: %s", UPLOAD_BUCKET, file_path, exc)

    return MessageResponse(message="Article deleted")


@router.post("/upload", response_model=UploadResult, status_code=status.HTTP_201_CREATED)
async def upload_article_file(
    file: UploadFile,
    storage: Storage,
    folder: str | None = Form(None),
) -> UploadResult:
    """Store a file in the uploads bucket; pass the returned path as ``filePath``."""
    content = await file.read()
    path = await storage.upload(UPLOAD_BUCKET, file.filename or "", content, folder)
    return UploadResult(path=path, bucket=UPLOAD_BUCKET, size=len(content))


@router.get("/{article_id}", response_model=ArticleDetail)
async def get_article(article_id: uuid.UUID, session: Session) -> ArticleDetail:
    article = await _get_or_404(article_id, session)
    return ArticleDetail(article=await _read_with_owner(article, session))


# ── Internal helpers ──────────────────────────────────────────

async def _get_or_404(article_id: uuid.UUID, session) -> Article:
    article = await session.get(Article, article_id)
    if article is None:
        raise NotFoundError("Article not found")
    return article


async def _read_with_owner(article: Article, session) -> ArticleRead:
    owner = await session.get(User, article.user_id) if article.user_id else None
    return _to_read(article, owner)


async def _check_references(
    user_id: uuid.UUID | None, session_id: uuid.UUID | None, session,
) -> None:
    if user_id is not None and await session.get(User, user_id) is None:
        raise UserNotFound(user_id)
    if session_id is not None and await session.get(WriterSession, session_id) is None:
        raise NotFoundError("Writer session not found")
