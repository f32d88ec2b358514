"""Password hashing and access tokens."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from appprompt.config import Settings

settings = Settings()
ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of ``password`` against a stored hash."""
    return pwd_context.verify(password, password_hash)


def create_access_token(user_id: int) -> str:
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": issued,
        "exp": issued + timedelta(hours=settings.jwt_ttl_h),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> int:
    """Return the user id from ``token``; raises ``jwt.PyJWTError`` if invalid."""
    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[ALGORITHM],
        options={"verify_exp": True, "require": ["sub", "exp"]},
    )
    try:
        return int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise jwt.InvalidTokenError("Malformed subject") from exc


def dummy_verify() -> None:
    """Spend the same time as a real check when the account does not exist."""
    pwd_context.dummy_verify()
