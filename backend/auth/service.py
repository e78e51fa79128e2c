import logging

from sqlalchemy.orm import Session

from auth.utils import (
    MAX_PASSWORD_BYTES,
    Role,
    create_token,
    hash_password,
    normalize_email,
    normalize_username,
    password_too_long,
    verify_password,
)
from db import storage
from db.models import User
from services.errors import ConflictError, UnauthorizedError, ValidationError
from services.uniqueness import insert_or_conflict

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"

# Compared against when the username is unknown so both failure paths cost one bcrypt check.
_DUMMY_HASH = hash_password("arcane-arc-timing-guard")


def signup(
    db: Session,
    *,
    username: str,
    email: str,
    password: str,
    full_name: str,
    role: Role = Role.USER,
) -> tuple[User, str]:
    canonical_username = " ".join((username or "").strip().split())
    username_normalized = normalize_username(username)
    email_normalized = normalize_email(email)
    if len(username_normalized) < 3:
        raise ValidationError("Username must be at least 3 characters", field="username")
    if "@" not in email_normalized:
        raise ValidationError("A valid email is required", field="email")
    if len(password or "") < 6:
        raise ValidationError("Password must be at least 6 characters", field="password")
    if password_too_long(password):
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes", field="password")
    if not (full_name or "").strip():
        raise ValidationError("Full name is required", field="full_name")

    if storage.get_user_by_username(db, username_normalized):
        raise ConflictError("Username already taken")
    if storage.get_user_by_email(db, email_normalized):
        raise ConflictError("Email already registered")

    user = insert_or_conflict(
        db,
        lambda: storage.create_user(
            db,
            username=canonical_username,
            username_normalized=username_normalized,
            email=(email or "").strip(),
            email_normalized=email_normalized,
            password_hash=hash_password(password),
            full_name=full_name.strip(),
            role=role.value,
        ),
        "Username or email already registered",
    )
    logger.info("User signed up: id=%s username=%s", user.id, user.username)
    return user, create_token(user)


def login(db: Session, *, username: str, password: str) -> tuple[User, str]:
    user = storage.get_user_by_username(db, normalize_username(username))
    if not user:
        verify_password(password or "", _DUMMY_HASH)
        logger.warning("Rejected login attempt")
        raise UnauthorizedError(INVALID_CREDENTIALS)
    if not verify_password(password or "", user.password_hash):
        logger.warning("Rejected login attempt")
        raise UnauthorizedError(INVALID_CREDENTIALS)
    return user, create_token(user)
