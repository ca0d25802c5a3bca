"""FastAPI dependencies for authentication and session resolution."""

import math
import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from mysre.core.database import get_session
from mysre.core.security import decode_jwt
from mysre.models.user import User, UserRole
from mysre.services.storage import ObjectStorage, get_storage

bearer_scheme = HTTPBearer()


class AuthSession:
    """Signed-in identity carried through a request.

    Created from the bearer JWT issued by ``/auth/login``; there is no
    server-side session state, signing out is dropping the token.
    """

    __slots__ = ("user_id", "user_role")

    def __init__(self, user_id: uuid.UUID, user_role: UserRole) -> None:
        self.user_id = user_id
        self.user_role = user_role

    @property
    def is_admin(self) -> bool:
        return self.user_role == UserRole.ADMIN


async def get_auth_session(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AuthSession:
    """Decode the bearer JWT and confirm its user still exists."""
    try:
        payload = decode_jwt(credentials.credentials)
        user_id = uuid.UUID(payload["sub"])
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired JWT",
        ) from exc
    except (KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed JWT payload",
        ) from exc

    # Role is read from the row, so a demoted admin loses access immediately.
    user = await session.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session user no longer exists",
        )
    return AuthSession(user_id=user.id, user_role=user.role)


async def require_admin(
    auth: Annotated[AuthSession, Depends(get_auth_session)],
) -> AuthSession:
    if not auth.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can perform this action",
        )
    return auth


class Pagination:
    """``page`` / ``limit`` query parameters shared by the list endpoints."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ) -> None:
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.limit)


# Typed shorthand for use in route signatures
Auth = Annotated[AuthSession, Depends(get_auth_session)]
AdminAuth = Annotated[AuthSession, Depends(require_admin)]
Session = Annotated[AsyncSession, Depends(get_session)]
Storage = Annotated[ObjectStorage, Depends(get_storage)]
Page = Annotated[Pagination, Depends()]
