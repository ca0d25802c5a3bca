"""Shared test fixtures — async SQLite in-memory DB + test client."""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-do-not-use-in-production")

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

# Import all models so metadata is populated
import mysre.models  # noqa: E402, F401
from mysre.core import cache  # noqa: E402
from mysre.core.database import get_session  # noqa: E402
from mysre.core.pricing import TIER_MONTHLY_LIMITS, Tier  # noqa: E402
from mysre.core.security import create_jwt, hash_password  # noqa: E402
from mysre.main import app  # noqa: E402
from mysre.models.user import User, UserRole  # noqa: E402
from mysre.services.storage import ObjectStorage, get_storage  # noqa: E402

PASSWORD = "password123"
_PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)

    # SQLite leaves foreign keys unenforced unless asked per connection
    @event.listens_for(eng.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def test_session_factory(engine):
    """Session factory bound to the test SQLite engine."""
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with test_session_factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
def storage(tmp_path) -> ObjectStorage:
    return ObjectStorage(root=tmp_path / "storage")


@pytest.fixture
async def client(session, storage) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session and storage overrides."""

    async def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_storage] = lambda: storage
    cache.clear()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    cache.clear()


@pytest.fixture
def make_user(session):
    """Insert a user directly; returns the persisted row."""
    counter = 0

    async def _make(
        name: str | None = None,
        role: UserRole = UserRole.USER,
        tier: Tier = Tier.BASIC,
        token_balance: int = 0,
        **fields,
    ) -> User:
        nonlocal counter
        counter += 1
        user = User(
            name=name or f"Student {counter}",
            email=fields.pop("email", f"student{counter}@univ.ac.id"),
            password_hash=_PASSWORD_HASH,
            role=role,
            tier=tier,
            token_balance=token_balance,
            monthly_token_limit=fields.pop("monthly_token_limit", TIER_MONTHLY_LIMITS[tier]),
            **fields,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers():
    """Bearer headers carrying a JWT for the given user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_jwt(str(user.id), user.role)}"}

    return _headers
