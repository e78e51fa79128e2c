from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth.utils import session_for_user  # noqa: E402
from db import storage  # noqa: E402
from db.database import Base  # noqa: E402
from db.models import User, UserChallenge  # noqa: E402
from services import challenge_service, content_service  # noqa: E402
from services.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError  # noqa: E402


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _new_user(db, username: str, role: str = "user") -> User:
    user = User(
        username=username,
        username_normalized=username.lower(),
        email=f"{username}@example.com",
        email_normalized=f"{username}@example.com",
        password_hash="hash",
        full_name=username.title(),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _seed_challenge(db, admin: User):
    week = content_service.create_week(
        db,
        session_for_user(admin),
        week_number=1,
        title="Self-Discipline",
        description="Build habits",
        icon="Dumbbell",
        color="#ff6b35",
    )
    challenge = challenge_service.create_challenge(
        db,
        session_for_user(admin),
        week_id=week.id,
        title="Wake at 6am",
        description="Every day this week",
        type="daily",
    )
    db.commit()
    return week, challenge


def test_toggle_cycles_absent_complete_incomplete_complete():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    user = _new_user(db, "member")
    _, challenge = _seed_challenge(db, admin)
    session = session_for_user(user)

    first = challenge_service.toggle_challenge(db, session, challenge.id)
    db.commit()
    assert first.completed is True
    assert first.completed_at is not None

    second = challenge_service.toggle_challenge(db, session, challenge.id)
    db.commit()
    assert second.id == first.id
    assert second.completed is False
    assert second.completed_at is None

    third = challenge_service.toggle_challenge(db, session, challenge.id)
    db.commit()
    assert third.completed is True
    assert db.query(UserChallenge).filter(UserChallenge.user_id == user.id).count() == 1
    assert storage.count_completed_challenges(db, user.id) == 1


def test_toggle_unknown_challenge_is_not_found():
    db = _new_db()
    user = _new_user(db, "member")
    with pytest.raises(NotFoundError):
        challenge_service.toggle_challenge(db, session_for_user(user), "missing")


def test_toggle_state_is_per_user():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    alice = _new_user(db, "alice")
    bob = _new_user(db, "bob")
    _, challenge = _seed_challenge(db, admin)

    challenge_service.toggle_challenge(db, session_for_user(alice), challenge.id)
    db.commit()

    rows = challenge_service.list_challenges_for_user(db, session_for_user(bob))
    assert len(rows) == 1
    assert rows[0]["user_challenge"] is None
    assert rows[0]["week"].week_number == 1

    rows = challenge_service.list_challenges_for_user(db, session_for_user(alice))
    assert rows[0]["user_challenge"].completed is True


def test_challenge_creation_is_admin_only_and_validated():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    user = _new_user(db, "member")
    week, _ = _seed_challenge(db, admin)

    with pytest.raises(ForbiddenError):
        challenge_service.create_challenge(
            db, session_for_user(user), week_id=week.id, title="x", description="y", type="daily"
        )
    with pytest.raises(ValidationError):
        challenge_service.create_challenge(
            db, session_for_user(admin), week_id=week.id, title="x", description="y", type="monthly"
        )
    with pytest.raises(NotFoundError):
        challenge_service.create_challenge(
            db, session_for_user(admin), week_id="nope", title="x", description="y", type="weekly"
        )


def test_duplicate_week_number_conflicts():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    _seed_challenge(db, admin)
    with pytest.raises(ConflictError):
        content_service.create_week(
            db,
            session_for_user(admin),
            week_number=1,
            title="Again",
            description="dup",
            icon="X",
            color="#000",
        )
    with pytest.raises(ValidationError):
        content_service.create_week(
            db,
            session_for_user(admin),
            week_number=9,
            title="Beyond",
            description="out of range",
            icon="X",
            color="#000",
        )
