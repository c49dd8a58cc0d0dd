from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import HTTPException, status
from jose import JWTError
from jose.jwt import decode, encode

from examprep.config import settings
from examprep.schemas.auth_schemas import AuthTokenPayload
from examprep.utils.logger import configure_logging

logger = configure_logging()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("stored password hash is malformed")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password for storing."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def token_expiry(minutes: Optional[int] = None) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes or settings.access_token_minutes)


def create_access_token(data: AuthTokenPayload) -> str:
    """Create a JWT access token."""
    return encode(data.model_dump(exclude_none=True), settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: Optional[str]) -> AuthTokenPayload:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")
    try:
        payload = decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return AuthTokenPayload(**payload)
    except JWTError as e:
        logger.warning("token rejected: %s", e)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
