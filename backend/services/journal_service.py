from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from auth.utils import AuthSession
from config import settings
from db import storage
from db.models import Journal
from services.errors import NotFoundError, ValidationError
from services.uniqueness import insert_or_conflict
from utils.datetime_utils import today_for_tz

logger = logging.getLogger(__name__)

VALID_MOODS = {"great", "good", "okay", "challenging"}
ALREADY_JOURNALED = "You've already journaled today"


def program_today(now: datetime | None = None):
    return today_for_tz(settings.PROGRAM_TIMEZONE, now)


def _clean(value: str | None) -> str | None:
    text = (value or "").strip()
    return text or None


def get_today_journal(db: Session, session: AuthSession, now: datetime | None = None) -> Journal | None:
    return storage.get_journal_for_day(db, session.user_id, program_today(now))


def list_journals(db: Session, session: AuthSession, limit: int | None = None) -> list[Journal]:
    return storage.list_journals(db, session.user_id, limit=limit)


def create_journal(
    db: Session,
    session: AuthSession,
    *,
    achievement: str | None = None,
    challenge: str | None = None,
    gratitude: str | None = None,
    mood: str | None = None,
    now: datetime | None = None,
) -> Journal:
    """Record today's entry; a second entry for the same program day is a conflict.

    The journal row, the counter increment and the streak update land in one
    unit of work; the (user, entry_date) unique index decides the race.
    """
    fields = {
        "achievement": _clean(achievement),
        "challenge": _clean(challenge),
        "gratitude": _clean(gratitude),
    }
    if not any(fields.values()):
        raise ValidationError("Journal needs an achievement, challenge or gratitude entry")
    mood_value = _clean(mood)
    if mood_value is not None:
        mood_value = mood_value.lower()
        if mood_value not in VALID_MOODS:
            raise ValidationError(f"mood must be one of {sorted(VALID_MOODS)}", field="mood")

    user = storage.get_user(db, session.user_id)
    if not user:
        raise NotFoundError("User", session.user_id)

    today = program_today(now)
    had_yesterday = storage.get_journal_for_day(db, user.id, today - timedelta(days=1)) is not None

    journal = insert_or_conflict(
        db,
        lambda: storage.create_journal(db, user_id=user.id, entry_date=today, mood=mood_value, **fields),
        ALREADY_JOURNALED,
    )
    storage.increment_user_journals(db, user.id)
    storage.update_user_streak(db, user.id, (int(user.streak or 0) + 1) if had_yesterday else 1)
    db.flush()
    logger.info("Journal created: user=%s day=%s", user.id, today.isoformat())
    return journal
