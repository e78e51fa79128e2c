"""Typed persistence primitives over every table.

Reads return the row or ``None``; writes flush and return the persisted row with
its server-assigned id and timestamps. Callers own the transaction (commit or
rollback). Only tasks are ever hard-deleted.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from db.models import (
    Achievement,
    Announcement,
    Challenge,
    Journal,
    Message,
    Resource,
    Task,
    TaskSubmission,
    User,
    UserAchievement,
    UserChallenge,
    UserProgress,
    UserTask,
    Week,
)
from utils.datetime_utils import utcnow


def _add(db: Session, row):
    db.add(row)
    db.flush()
    db.refresh(row)
    return row


def _apply(row, values: dict[str, Any], allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    for key, value in values.items():
        if key in allowed_set:
            setattr(row, key, value)


# ─── Users ───


def get_user(db: Session, user_id: str) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_username(db: Session, username_normalized: str) -> User | None:
    return db.query(User).filter(User.username_normalized == username_normalized).first()


def get_user_by_email(db: Session, email_normalized: str) -> User | None:
    return db.query(User).filter(User.email_normalized == email_normalized).first()


def create_user(db: Session, **values: Any) -> User:
    return _add(db, User(**values))


def update_user_streak(db: Session, user_id: str, streak: int) -> None:
    db.query(User).filter(User.id == user_id).update({User.streak: int(streak)}, synchronize_session="fetch")


def update_user_week(db: Session, user_id: str, week: int) -> None:
    db.query(User).filter(User.id == user_id).update({User.current_week: int(week)}, synchronize_session="fetch")


def increment_user_journals(db: Session, user_id: str) -> None:
    db.query(User).filter(User.id == user_id).update(
        {User.total_journals: User.total_journals + 1},
        synchronize_session="fetch",
    )


def list_users(db: Session, include_admins: bool = True) -> list[User]:
    query = db.query(User)
    if not include_admins:
        query = query.filter(User.role != "admin")
    return query.order_by(User.created_at.desc(), User.id.desc()).all()


def list_active_users(db: Session, since: datetime) -> list[User]:
    active_ids = select(Journal.user_id).where(Journal.created_at >= since).distinct()
    return db.query(User).filter(User.id.in_(active_ids)).all()


def count_users_created_between(db: Session, start: datetime, end: datetime) -> int:
    return int(
        db.query(func.count(User.id))
        .filter(User.created_at >= start, User.created_at < end)
        .scalar()
        or 0
    )


PROFILE_FIELDS = frozenset(
    {
        "full_name",
        "profile_picture",
        "bio",
        "phone",
        "date_of_birth",
        "location",
        "occupation",
        "goals",
        "emergency_contact",
        "emergency_phone",
    }
)


def update_user_profile(db: Session, user_id: str, profile: dict[str, Any]) -> User | None:
    user = get_user(db, user_id)
    if not user:
        return None
    _apply(user, profile, PROFILE_FIELDS)
    db.flush()
    return user


# ─── Weeks ───


def list_weeks(db: Session) -> list[Week]:
    return db.query(Week).order_by(Week.week_number.asc()).all()


def get_week(db: Session, week_id: str) -> Week | None:
    return db.query(Week).filter(Week.id == week_id).first()


def get_week_by_number(db: Session, week_number: int) -> Week | None:
    return db.query(Week).filter(Week.week_number == int(week_number)).first()


def create_week(db: Session, **values: Any) -> Week:
    return _add(db, Week(**values))


# ─── Challenges ───


def list_challenges(db: Session) -> list[Challenge]:
    return db.query(Challenge).order_by(Challenge.created_at.desc(), Challenge.id.desc()).all()


def list_challenges_by_week(db: Session, week_id: str) -> list[Challenge]:
    return db.query(Challenge).filter(Challenge.week_id == week_id).order_by(Challenge.created_at.asc()).all()


def get_challenge(db: Session, challenge_id: str) -> Challenge | None:
    return db.query(Challenge).filter(Challenge.id == challenge_id).first()


def create_challenge(db: Session, **values: Any) -> Challenge:
    return _add(db, Challenge(**values))


# ─── User challenges ───


def get_user_challenge(db: Session, user_id: str, challenge_id: str) -> UserChallenge | None:
    return (
        db.query(UserChallenge)
        .filter(UserChallenge.user_id == user_id, UserChallenge.challenge_id == challenge_id)
        .first()
    )


def create_user_challenge(db: Session, **values: Any) -> UserChallenge:
    return _add(db, UserChallenge(**values))


def update_user_challenge(db: Session, row: UserChallenge, completed: bool, completed_at: datetime | None) -> UserChallenge:
    row.completed = bool(completed)
    row.completed_at = completed_at
    db.flush()
    return row


def list_user_challenges(db: Session, user_id: str) -> list[UserChallenge]:
    return db.query(UserChallenge).filter(UserChallenge.user_id == user_id).all()


def count_completed_challenges(db: Session, user_id: str) -> int:
    return int(
        db.query(func.count(UserChallenge.id))
        .filter(UserChallenge.user_id == user_id, UserChallenge.completed.is_(True))
        .scalar()
        or 0
    )


# ─── Journals ───


def list_journals(db: Session, user_id: str, limit: int | None = None) -> list[Journal]:
    query = (
        db.query(Journal)
        .filter(Journal.user_id == user_id)
        .order_by(Journal.entry_date.desc(), Journal.created_at.desc())
    )
    if limit is not None:
        query = query.limit(int(limit))
    return query.all()


def get_journal_for_day(db: Session, user_id: str, day: date) -> Journal | None:
    return db.query(Journal).filter(Journal.user_id == user_id, Journal.entry_date == day).first()


def create_journal(db: Session, **values: Any) -> Journal:
    return _add(db, Journal(**values))


def count_journals(db: Session) -> int:
    return int(db.query(func.count(Journal.id)).scalar() or 0)


def count_journals_created_between(db: Session, start: datetime, end: datetime) -> int:
    return int(
        db.query(func.count(Journal.id))
        .filter(Journal.created_at >= start, Journal.created_at < end)
        .scalar()
        or 0
    )


# ─── Resources & announcements ───


def list_resources(db: Session) -> list[Resource]:
    return db.query(Resource).order_by(Resource.created_at.desc(), Resource.id.desc()).all()


def create_resource(db: Session, **values: Any) -> Resource:
    return _add(db, Resource(**values))


def list_announcements(db: Session, limit: int | None = None) -> list[Announcement]:
    query = db.query(Announcement).order_by(Announcement.created_at.desc(), Announcement.id.desc())
    if limit is not None:
        query = query.limit(int(limit))
    return query.all()


def create_announcement(db: Session, **values: Any) -> Announcement:
    return _add(db, Announcement(**values))


# ─── Achievements ───


def list_achievements(db: Session) -> list[Achievement]:
    return db.query(Achievement).order_by(Achievement.name.asc()).all()


def get_achievement(db: Session, achievement_id: str) -> Achievement | None:
    return db.query(Achievement).filter(Achievement.id == achievement_id).first()


def create_achievement(db: Session, **values: Any) -> Achievement:
    return _add(db, Achievement(**values))


def list_user_achievements(db: Session, user_id: str) -> list[UserAchievement]:
    return (
        db.query(UserAchievement)
        .filter(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.unlocked_at.asc())
        .all()
    )


def add_user_achievement(db: Session, user_id: str, achievement_id: str) -> UserAchievement:
    return _add(db, UserAchievement(user_id=user_id, achievement_id=achievement_id))


# ─── User progress ───


def list_user_progress(db: Session, user_id: str) -> list[UserProgress]:
    return db.query(UserProgress).filter(UserProgress.user_id == user_id).all()


def get_user_progress(db: Session, user_id: str, week_id: str) -> UserProgress | None:
    return (
        db.query(UserProgress)
        .filter(UserProgress.user_id == user_id, UserProgress.week_id == week_id)
        .first()
    )


def create_user_progress(db: Session, **values: Any) -> UserProgress:
    return _add(db, UserProgress(**values))


def update_user_progress(db: Session, row: UserProgress, completed: bool, completed_at: datetime | None) -> UserProgress:
    row.completed = bool(completed)
    row.completed_at = completed_at
    db.flush()
    return row


def count_completed_weeks(db: Session, user_id: str) -> int:
    return int(
        db.query(func.count(UserProgress.id))
        .filter(UserProgress.user_id == user_id, UserProgress.completed.is_(True))
        .scalar()
        or 0
    )


# ─── Tasks ───

TASK_FIELDS = frozenset({"title", "description", "week_id", "due_date", "assigned_to_all"})


def list_tasks(db: Session) -> list[Task]:
    return db.query(Task).order_by(Task.created_at.desc(), Task.id.desc()).all()


def get_task(db: Session, task_id: str) -> Task | None:
    return db.query(Task).filter(Task.id == task_id).first()


def create_task(db: Session, **values: Any) -> Task:
    return _add(db, Task(**values))


def update_task(db: Session, task: Task, values: dict[str, Any]) -> Task:
    _apply(task, values, TASK_FIELDS)
    db.flush()
    return task


def delete_task(db: Session, task_id: str) -> bool:
    db.query(TaskSubmission).filter(TaskSubmission.task_id == task_id).delete(synchronize_session=False)
    db.query(UserTask).filter(UserTask.task_id == task_id).delete(synchronize_session=False)
    deleted = db.query(Task).filter(Task.id == task_id).delete(synchronize_session=False)
    db.flush()
    return bool(deleted)


def list_tasks_visible_to_user(db: Session, user_id: str) -> list[Task]:
    """Tasks assigned to everyone or explicitly to the user, each task once."""
    assigned_ids = select(UserTask.task_id).where(UserTask.user_id == user_id)
    return (
        db.query(Task)
        .filter(or_(Task.assigned_to_all.is_(True), Task.id.in_(assigned_ids)))
        .order_by(Task.created_at.desc(), Task.id.desc())
        .all()
    )


# ─── Task submissions ───


def create_task_submission(db: Session, **values: Any) -> TaskSubmission:
    return _add(db, TaskSubmission(**values))


def get_task_submission(db: Session, submission_id: str) -> TaskSubmission | None:
    return db.query(TaskSubmission).filter(TaskSubmission.id == submission_id).first()


def get_user_task_submission(db: Session, user_id: str, task_id: str) -> TaskSubmission | None:
    return (
        db.query(TaskSubmission)
        .filter(TaskSubmission.user_id == user_id, TaskSubmission.task_id == task_id)
        .first()
    )


def list_task_submissions(db: Session, task_id: str) -> list[TaskSubmission]:
    return (
        db.query(TaskSubmission)
        .filter(TaskSubmission.task_id == task_id)
        .order_by(TaskSubmission.submitted_at.asc())
        .all()
    )


def list_user_task_submissions(db: Session, user_id: str) -> list[TaskSubmission]:
    return db.query(TaskSubmission).filter(TaskSubmission.user_id == user_id).all()


def update_task_submission_rating(
    db: Session,
    submission: TaskSubmission,
    rating: int,
    feedback: str,
    reviewed_by: str,
) -> TaskSubmission:
    submission.rating = int(rating)
    submission.feedback = feedback
    submission.reviewed_by = reviewed_by
    submission.reviewed_at = utcnow()
    db.flush()
    return submission


# ─── User tasks ───


def assign_task_to_user(db: Session, task_id: str, user_id: str) -> UserTask:
    return _add(db, UserTask(task_id=task_id, user_id=user_id))


def get_user_task(db: Session, user_task_id: str) -> UserTask | None:
    return db.query(UserTask).filter(UserTask.id == user_task_id).first()


def list_user_tasks(db: Session, user_id: str) -> list[UserTask]:
    return db.query(UserTask).filter(UserTask.user_id == user_id).order_by(UserTask.assigned_at.asc()).all()


def update_user_task_completion(db: Session, row: UserTask, completed: bool) -> UserTask:
    row.completed = bool(completed)
    row.completed_at = utcnow() if completed else None
    db.flush()
    return row


# ─── Messages ───


def create_message(db: Session, **values: Any) -> Message:
    return _add(db, Message(**values))


def get_message(db: Session, message_id: str) -> Message | None:
    return db.query(Message).filter(Message.id == message_id).first()


def list_messages_for_recipient(db: Session, user_id: str) -> list[Message]:
    return (
        db.query(Message)
        .filter(Message.recipient_id == user_id)
        .order_by(Message.sent_at.desc(), Message.id.desc())
        .all()
    )


def list_group_messages(db: Session) -> list[Message]:
    return (
        db.query(Message)
        .filter(Message.is_group_message.is_(True))
        .order_by(Message.sent_at.desc(), Message.id.desc())
        .all()
    )


def list_messages_sent_by(db: Session, sender_id: str) -> list[Message]:
    return (
        db.query(Message)
        .filter(Message.sender_id == sender_id)
        .order_by(Message.sent_at.desc(), Message.id.desc())
        .all()
    )


def mark_message_read(db: Session, message: Message) -> Message:
    if message.read_at is None:
        message.read_at = utcnow()
        db.flush()
    return message


def count_unread_messages(db: Session, user_id: str) -> int:
    return int(
        db.query(func.count(Message.id))
        .filter(Message.recipient_id == user_id, Message.read_at.is_(None))
        .scalar()
        or 0
    )
