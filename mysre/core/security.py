"""Password hashing and the bearer JWTs issued by ``/auth/login``."""

from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from mysre.core.config import get_settings

settings = get_settings()

# ── Password hashing (Argon2) ────────────────────────────────

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# ── JWT ───────────────────────────────────────────────────────

def _signing_key() -> str:
    if not settings.jwt_secret_key:
        raise RuntimeError("JWT_SECRET_KEY is not configured")
    return settings.jwt_secret_key


def create_jwt(subject: str, role: str, expires_delta: timedelta | None = None) -> str:
    """Sign a session token for user ``subject``.

    ``role`` is informational only; authorisation re-reads the role from
    the users table on every request.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "role": str(role),
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes)),
    }
    return jwt.encode(payload, _signing_key(), algorithm=settings.jwt_algorithm)


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jose.JWTError on failure."""
    return jwt.decode(token, _signing_key(), algorithms=[settings.jwt_algorithm])
