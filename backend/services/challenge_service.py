from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.utils import AuthSession, require_admin
from db import storage
from db.models import Challenge, UserChallenge
from services.errors import NotFoundError, ValidationError
from utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

VALID_CHALLENGE_TYPES = {"daily", "weekly"}


def create_challenge(
    db: Session,
    session: AuthSession,
    *,
    week_id: str,
    title: str,
    description: str,
    type: str,
) -> Challenge:
    require_admin(session)
    if not storage.get_week(db, week_id):
        raise NotFoundError("Week", week_id)
    challenge_type = (type or "").strip().lower()
    if challenge_type not in VALID_CHALLENGE_TYPES:
        raise ValidationError(f"type must be one of {sorted(VALID_CHALLENGE_TYPES)}", field="type")
    if not (title or "").strip():
        raise ValidationError("Title is required", field="title")

    challenge = storage.create_challenge(
        db,
        week_id=week_id,
        title=title.strip(),
        description=(description or "").strip(),
        type=challenge_type,
        created_by=session.user_id,
    )
    logger.info("Challenge created: id=%s week=%s by=%s", challenge.id, week_id, session.user_id)
    return challenge


def _flip(db: Session, row: UserChallenge) -> UserChallenge:
    completed = not bool(row.completed)
    return storage.update_user_challenge(db, row, completed, utcnow() if completed else None)


def toggle_challenge(db: Session, session: AuthSession, challenge_id: str) -> UserChallenge:
    """Flip the caller's completion state for a challenge.

    absent -> complete, complete -> incomplete, incomplete -> complete.
    """
    if not storage.get_challenge(db, challenge_id):
        raise NotFoundError("Challenge", challenge_id)

    row = storage.get_user_challenge(db, session.user_id, challenge_id)
    if row is not None:
        return _flip(db, row)

    try:
        return storage.create_user_challenge(
            db,
            user_id=session.user_id,
            challenge_id=challenge_id,
            completed=True,
            completed_at=utcnow(),
        )
    except IntegrityError:
        # A concurrent toggle inserted the pair first; flip that row instead.
        db.rollback()
        row = storage.get_user_challenge(db, session.user_id, challenge_id)
        if row is None:
            raise
        return _flip(db, row)


def list_challenges_for_user(db: Session, session: AuthSession) -> list[dict]:
    weeks = {week.id: week for week in storage.list_weeks(db)}
    rows = {row.challenge_id: row for row in storage.list_user_challenges(db, session.user_id)}
    return [
        {
            "challenge": challenge,
            "user_challenge": rows.get(challenge.id),
            "week": weeks.get(challenge.week_id),
        }
        for challenge in storage.list_challenges(db)
    ]


def list_challenges_with_week(db: Session, session: AuthSession) -> list[dict]:
    require_admin(session)
    weeks = {week.id: week for week in storage.list_weeks(db)}
    return [{"challenge": c, "week": weeks.get(c.week_id)} for c in storage.list_challenges(db)]
