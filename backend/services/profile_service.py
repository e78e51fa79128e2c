from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from auth.utils import AuthSession, require_admin
from config import settings
from db import storage
from db.models import User, UserProgress
from services.errors import NotFoundError, ValidationError
from services.uniqueness import insert_or_conflict
from utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


def user_to_dict(user: User) -> dict:
    """Public user payload; the password hash never leaves this layer."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
        "current_week": user.current_week,
        "streak": user.streak,
        "total_journals": user.total_journals,
        "profile_picture": user.profile_picture,
        "bio": user.bio,
        "phone": user.phone,
        "date_of_birth": user.date_of_birth.isoformat() if user.date_of_birth else None,
        "location": user.location,
        "occupation": user.occupation,
        "goals": user.goals,
        "emergency_contact": user.emergency_contact,
        "emergency_phone": user.emergency_phone,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def update_profile(db: Session, session: AuthSession, changes: dict[str, Any]) -> User:
    """Apply whitelisted profile fields; role, counters and credentials are ignored."""
    allowed = {key: value for key, value in changes.items() if key in storage.PROFILE_FIELDS}
    if "full_name" in allowed and not (allowed["full_name"] or "").strip():
        raise ValidationError("Full name cannot be empty", field="full_name")
    user = storage.update_user_profile(db, session.user_id, allowed)
    if not user:
        raise NotFoundError("User", session.user_id)
    return user


def get_user_for_admin(db: Session, session: AuthSession, user_id: str) -> User:
    require_admin(session)
    user = storage.get_user(db, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


def list_users(db: Session, session: AuthSession) -> list[User]:
    require_admin(session)
    return storage.list_users(db)


def _check_week_number(week: int) -> int:
    if isinstance(week, bool) or not isinstance(week, int) or not 1 <= week <= settings.PROGRAM_WEEKS:
        raise ValidationError(f"Week must be between 1 and {settings.PROGRAM_WEEKS}", field="current_week")
    return week


def set_user_week(db: Session, session: AuthSession, user_id: str, week: int) -> User:
    require_admin(session)
    user = storage.get_user(db, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    storage.update_user_week(db, user.id, _check_week_number(week))
    db.refresh(user)
    return user


def complete_week(db: Session, session: AuthSession, user_id: str) -> UserProgress:
    """Mark the user's current week complete and advance them (capped at the last week)."""
    require_admin(session)
    user = storage.get_user(db, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    week = storage.get_week_by_number(db, int(user.current_week or 1))
    if not week:
        raise NotFoundError("Week", str(user.current_week))

    row = storage.get_user_progress(db, user.id, week.id)
    if row is None:
        row = insert_or_conflict(
            db,
            lambda: storage.create_user_progress(
                db, user_id=user.id, week_id=week.id, completed=True, completed_at=utcnow()
            ),
            "Week progress already recorded",
        )
    elif not row.completed:
        storage.update_user_progress(db, row, True, utcnow())

    next_week = min(int(user.current_week or 1) + 1, settings.PROGRAM_WEEKS)
    storage.update_user_week(db, user.id, next_week)
    logger.info("Week completed: user=%s week=%s next=%s", user.id, week.week_number, next_week)
    return row
