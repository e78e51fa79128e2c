"""Derived, read-only views recomputed from storage on every call."""
from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from auth.utils import AuthSession, require_admin
from config import settings
from db import storage
from db.models import User
from services.achievement_service import list_user_achievements_with_details
from services.errors import NotFoundError
from services.journal_service import program_today
from utils.datetime_utils import days_ago, start_of_day, end_of_day

RECENT_LIMIT = 5


def completed_weeks_count(db: Session, user_id: str) -> int:
    return storage.count_completed_weeks(db, user_id)


def completed_challenges_count(db: Session, user_id: str) -> int:
    return storage.count_completed_challenges(db, user_id)


def active_users(db: Session, days: int | None = None, now: datetime | None = None) -> list[User]:
    window = settings.ACTIVE_USER_WINDOW_DAYS if days is None else days
    return storage.list_active_users(db, days_ago(window, now))


def average_progress(users: list[User], program_weeks: int | None = None) -> float:
    weeks = program_weeks or settings.PROGRAM_WEEKS
    if not users:
        return 0.0
    total = sum((int(u.current_week or 0) / weeks) * 100.0 for u in users)
    return total / len(users)


def unread_message_count(db: Session, user_id: str) -> int:
    """Individual unread messages only; group messages have no per-recipient read state."""
    return storage.count_unread_messages(db, user_id)


def tasks_with_submissions(db: Session, session: AuthSession) -> list[dict]:
    submissions = {s.task_id: s for s in storage.list_user_task_submissions(db, session.user_id)}
    return [
        {"task": task, "submission": submissions.get(task.id)}
        for task in storage.list_tasks_visible_to_user(db, session.user_id)
    ]


def dashboard(db: Session, session: AuthSession, now: datetime | None = None) -> dict:
    user = storage.get_user(db, session.user_id)
    if not user:
        raise NotFoundError("User", session.user_id)
    challenges = {c.id: c for c in storage.list_challenges(db)}
    active_challenges = [
        {"user_challenge": row, "challenge": challenges[row.challenge_id]}
        for row in storage.list_user_challenges(db, user.id)
        if row.challenge_id in challenges
    ]
    return {
        "user": user,
        "weeks": storage.list_weeks(db),
        "today_journal": storage.get_journal_for_day(db, user.id, program_today(now)),
        "recent_journals": storage.list_journals(db, user.id, limit=RECENT_LIMIT),
        "active_challenges": active_challenges,
        "announcements": storage.list_announcements(db, limit=RECENT_LIMIT),
        "unread_messages": unread_message_count(db, user.id),
    }


def profile(db: Session, user: User) -> dict:
    return {
        "user": user,
        "achievements": list_user_achievements_with_details(db, user.id),
        "stats": {
            "completed_weeks": completed_weeks_count(db, user.id),
            "completed_challenges": completed_challenges_count(db, user.id),
            "longest_streak": int(user.streak or 0),
        },
    }


def recent_activity(db: Session, days: int = 7, now: datetime | None = None) -> list[dict]:
    today = program_today(now)
    buckets = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        start = start_of_day(day, settings.PROGRAM_TIMEZONE)
        end = end_of_day(day, settings.PROGRAM_TIMEZONE)
        buckets.append(
            {
                "date": day.isoformat(),
                "journals": storage.count_journals_created_between(db, start, end),
                "signups": storage.count_users_created_between(db, start, end),
            }
        )
    return buckets


def admin_stats(db: Session, session: AuthSession, now: datetime | None = None) -> dict:
    require_admin(session)
    users = storage.list_users(db)
    return {
        "total_users": len(users),
        "active_users": len(active_users(db, now=now)),
        "total_journals": storage.count_journals(db),
        "total_challenges": len(storage.list_challenges(db)),
        "average_progress": average_progress(users),
        "recent_activity": recent_activity(db, now=now),
    }
