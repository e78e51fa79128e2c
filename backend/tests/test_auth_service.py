from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth import service as auth_service  # noqa: E402
from auth.bootstrap import ensure_admin  # noqa: E402
from auth.utils import (  # noqa: E402
    Role,
    create_token,
    decode_token,
    require_admin,
    session_for_user,
)
from config import Settings, settings  # noqa: E402
from db.database import Base  # noqa: E402
from db.models import User  # noqa: E402
from services.errors import ConflictError, ForbiddenError, UnauthorizedError, ValidationError  # noqa: E402


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _signup(db, username: str = "alice", email: str = "alice@example.com"):
    user, token = auth_service.signup(
        db,
        username=username,
        email=email,
        password="secret1",
        full_name="Alice Example",
    )
    db.commit()
    return user, token


def test_signup_creates_user_role_and_returns_valid_token():
    db = _new_db()
    user, token = _signup(db)

    assert user.role == Role.USER.value
    assert user.current_week == 1
    assert user.streak == 0
    assert user.total_journals == 0
    assert user.password_hash != "secret1"

    session = decode_token(token)
    assert session.user_id == user.id
    assert session.username == "alice"
    assert session.role is Role.USER
    assert not session.is_admin


def test_duplicate_username_and_email_conflict_case_insensitively():
    db = _new_db()
    _signup(db)

    with pytest.raises(ConflictError) as exc:
        _signup(db, username="ALICE", email="other@example.com")
    assert exc.value.message == "Username already taken"

    with pytest.raises(ConflictError) as exc:
        _signup(db, username="alice2", email="Alice@Example.com")
    assert exc.value.message == "Email already registered"
    assert db.query(User).count() == 1


def test_signup_validation():
    db = _new_db()
    with pytest.raises(ValidationError):
        auth_service.signup(db, username="al", email="a@b.co", password="secret1", full_name="Al")
    with pytest.raises(ValidationError):
        auth_service.signup(db, username="alice", email="nope", password="secret1", full_name="Al")
    with pytest.raises(ValidationError):
        auth_service.signup(db, username="alice", email="a@b.co", password="123", full_name="Al")
    with pytest.raises(ValidationError):
        auth_service.signup(db, username="alice", email="a@b.co", password="secret1", full_name="  ")


def test_login_rejects_unknown_user_and_wrong_password_identically():
    db = _new_db()
    _signup(db)

    with pytest.raises(UnauthorizedError) as unknown:
        auth_service.login(db, username="ghost", password="secret1")
    with pytest.raises(UnauthorizedError) as wrong:
        auth_service.login(db, username="alice", password="not-it")
    assert unknown.value.message == wrong.value.message == auth_service.INVALID_CREDENTIALS

    user, token = auth_service.login(db, username="Alice", password="secret1")
    assert decode_token(token).user_id == user.id


def test_decode_token_rejects_missing_malformed_expired_and_foreign_tokens():
    db = _new_db()
    user, _ = _signup(db)

    with pytest.raises(UnauthorizedError) as exc:
        decode_token(None)
    assert exc.value.message == "Access token required"

    with pytest.raises(UnauthorizedError) as exc:
        decode_token("not-a-jwt")
    assert exc.value.message == "Invalid token"

    with pytest.raises(UnauthorizedError) as exc:
        decode_token(create_token(user, expiry_days_override=-1))
    assert exc.value.message == "Token expired"

    foreign = jwt.encode(
        {"sub": user.id, "username": user.username, "role": "user", "exp": datetime.now(timezone.utc) + timedelta(days=1)},
        "some-other-secret-entirely-not-ours",
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(UnauthorizedError):
        decode_token(foreign)

    bad_role = jwt.encode(
        {"sub": user.id, "username": user.username, "role": "superuser", "exp": datetime.now(timezone.utc) + timedelta(days=1)},
        settings.SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(UnauthorizedError):
        decode_token(bad_role)


def test_require_admin_rejects_regular_users():
    db = _new_db()
    user, _ = _signup(db)
    admin = ensure_admin(db)
    db.commit()

    user_session = session_for_user(user)
    admin_session = session_for_user(admin)

    with pytest.raises(ForbiddenError):
        require_admin(user_session)
    assert require_admin(admin_session) is admin_session


def test_ensure_admin_is_idempotent():
    db = _new_db()
    first = ensure_admin(db)
    db.commit()
    second = ensure_admin(db)
    assert first.id == second.id
    assert first.role == Role.ADMIN.value
    assert db.query(User).filter(User.role == "admin").count() == 1


def test_production_security_gate_rejects_default_secret_values():
    prod = Settings(ENVIRONMENT="production", SECRET_KEY="change-me-in-production", ADMIN_PASSWORD="Str0ng!AdminPass")
    with pytest.raises(RuntimeError):
        prod.validate_security_configuration()

    ok = Settings(ENVIRONMENT="production", SECRET_KEY="x" * 48, ADMIN_PASSWORD="Str0ng!AdminPass")
    ok.validate_security_configuration()


def test_signup_rejects_passwords_past_the_bcrypt_byte_limit():
    db = _new_db()
    for password in ("p" * 73, "é" * 40):
        with pytest.raises(ValidationError) as exc:
            auth_service.signup(db, username="alice", email="a@b.co", password=password, full_name="Al")
        assert exc.value.field == "password"
    assert db.query(User).count() == 0

    user, _ = auth_service.signup(db, username="alice", email="a@b.co", password="p" * 72, full_name="Al")
    db.commit()
    assert auth_service.login(db, username="alice", password="p" * 72)[0].id == user.id


def test_login_with_overlong_password_is_invalid_credentials():
    db = _new_db()
    _signup(db)
    with pytest.raises(UnauthorizedError) as exc:
        auth_service.login(db, username="alice", password="p" * 200)
    assert exc.value.message == auth_service.INVALID_CREDENTIALS


def test_ensure_admin_rejects_overlong_configured_password(monkeypatch):
    db = _new_db()
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", "p" * 100)
    with pytest.raises(RuntimeError):
        ensure_admin(db)
    assert db.query(User).count() == 0
