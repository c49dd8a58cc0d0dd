import hmac
from typing import Optional

from fastapi import Cookie, Depends, Header, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from examprep.config import get_db, settings
from examprep.models.models import Tier, User
from examprep.schemas.auth_schemas import AuthTokenPayload
from examprep.schemas.user_schemas import CurrentUser
from examprep.utils.jwt import create_access_token, get_password_hash, token_expiry, verify_password, verify_token
from examprep.utils.logger import configure_logging

logger = configure_logging()

COOKIE_NAME = "access_token"


def get_current_user(access_token: Optional[str] = Cookie(None), db: Session = Depends(get_db)) -> CurrentUser:
    if not access_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token",
        )

    payload = verify_token(access_token)
    user = get_user_by_email(payload.sub, db)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )
    return CurrentUser(user_id=user.id, email=user.email, name=user.name, tier=user.tier)


def require_webhook_secret(x_webhook_secret: Optional[str] = Header(None)) -> None:
    """Guard for collaborator intake routes. An unset secret closes them entirely."""
    expected = settings.webhook_secret
    if not expected or not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")


def set_auth_cookie(response: Response, user: User) -> None:
    token = create_access_token(AuthTokenPayload(sub=user.email, exp=token_expiry()))
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=settings.access_token_minutes * 60,
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=COOKIE_NAME,
        httponly=True,
        secure=False,
        samesite="lax"
    )


def get_user_by_email(email: str, db: Session) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def create_user(email: str, password: str, db: Session, name: Optional[str] = None, tier: Tier = Tier.FREE) -> User:
    user = User(email=email, hashed_password=get_password_hash(password), name=name, tier=tier)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    db.refresh(user)
    logger.info("user created id=%s tier=%s", user.id, user.tier.value)
    return user


def authenticate_user(email: str, password: str, db: Session) -> Optional[User]:
    user = get_user_by_email(email, db)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user
