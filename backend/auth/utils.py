from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import assert_never

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from config import settings
from db import storage
from db.database import get_db
from db.models import User
from services.errors import ForbiddenError, UnauthorizedError

security = HTTPBearer(auto_error=False)


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class AuthSession:
    """Identity bound to one request: who is calling and with which role."""

    user_id: str
    username: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return role_is_admin(self.role)


def role_is_admin(role: Role) -> bool:
    if role is Role.ADMIN:
        return True
    if role is Role.USER:
        return False
    assert_never(role)


def parse_role(value: str | None) -> Role:
    try:
        return Role((value or "").strip().lower())
    except ValueError:
        raise UnauthorizedError("Invalid token") from None


def normalize_username(username: str) -> str:
    return " ".join((username or "").strip().split()).lower()


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# bcrypt only reads the first 72 bytes; newer releases reject anything longer.
MAX_PASSWORD_BYTES = 72


def password_too_long(password: str) -> bool:
    return len((password or "").encode()) > MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False


def session_for_user(user: User) -> AuthSession:
    return AuthSession(user_id=user.id, username=user.username, role=parse_role(user.role))


def create_token(user: User, expiry_days_override: int | None = None) -> str:
    expiry_days = int(expiry_days_override) if expiry_days_override is not None else settings.JWT_EXPIRY_DAYS
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "role": parse_role(user.role).value,
        "iat": now,
        "exp": now + timedelta(days=expiry_days),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str | None) -> AuthSession:
    if not token:
        raise UnauthorizedError("Access token required")
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired") from None
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token") from None

    user_id = str(payload.get("sub") or "").strip()
    username = payload.get("username")
    if not user_id or not isinstance(username, str):
        raise UnauthorizedError("Invalid token")
    return AuthSession(user_id=user_id, username=username, role=parse_role(payload.get("role")))


def require_admin(session: AuthSession) -> AuthSession:
    if not session.is_admin:
        raise ForbiddenError("Admin access required")
    return session


def get_auth_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthSession:
    token = credentials.credentials if credentials and credentials.credentials else None
    return decode_token(token)


def require_admin_session(session: AuthSession = Depends(get_auth_session)) -> AuthSession:
    return require_admin(session)


def get_current_user(
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
) -> User:
    user = storage.get_user(db, session.user_id)
    if not user:
        raise UnauthorizedError("User not found")
    return user
