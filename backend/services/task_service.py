from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from auth.utils import AuthSession, require_admin
from config import settings
from db import storage
from db.models import Task, TaskSubmission, UserTask
from services.errors import ForbiddenError, NotFoundError, UnauthorizedError, ValidationError
from services.uniqueness import insert_or_conflict

logger = logging.getLogger(__name__)

ALREADY_SUBMITTED = "You have already submitted this task"
MIN_RATING = 1
MAX_RATING = 5


def _check_week(db: Session, week_id: str | None) -> None:
    if week_id is not None and not storage.get_week(db, week_id):
        raise NotFoundError("Week", week_id)


def create_task(
    db: Session,
    session: AuthSession,
    *,
    title: str,
    description: str,
    week_id: str | None = None,
    due_date: datetime | None = None,
    assigned_to_all: bool = False,
) -> Task:
    require_admin(session)
    if not (title or "").strip():
        raise ValidationError("Title is required", field="title")
    if not (description or "").strip():
        raise ValidationError("Description is required", field="description")
    _check_week(db, week_id)
    task = storage.create_task(
        db,
        title=title.strip(),
        description=description.strip(),
        week_id=week_id,
        due_date=due_date,
        assigned_to_all=bool(assigned_to_all),
        created_by=session.user_id,
    )
    logger.info("Task created: id=%s assigned_to_all=%s", task.id, task.assigned_to_all)
    return task


def update_task(db: Session, session: AuthSession, task_id: str, changes: dict[str, Any]) -> Task:
    require_admin(session)
    task = storage.get_task(db, task_id)
    if not task:
        raise NotFoundError("Task", task_id)
    for field in ("title", "description"):
        if field in changes and not (changes[field] or "").strip():
            raise ValidationError(f"`{field}` cannot be empty", field=field)
    if "week_id" in changes:
        _check_week(db, changes["week_id"])
    if "assigned_to_all" in changes:
        changes = {**changes, "assigned_to_all": bool(changes["assigned_to_all"])}
    return storage.update_task(db, task, changes)


def delete_task(db: Session, session: AuthSession, task_id: str) -> None:
    require_admin(session)
    if not storage.delete_task(db, task_id):
        raise NotFoundError("Task", task_id)
    logger.info("Task deleted: id=%s by=%s", task_id, session.user_id)


def list_all_tasks(db: Session, session: AuthSession) -> list[Task]:
    require_admin(session)
    return storage.list_tasks(db)


def assign_task(db: Session, session: AuthSession, task_id: str, user_id: str) -> UserTask:
    require_admin(session)
    if not storage.get_task(db, task_id):
        raise NotFoundError("Task", task_id)
    if not storage.get_user(db, user_id):
        raise NotFoundError("User", user_id)
    return insert_or_conflict(
        db,
        lambda: storage.assign_task_to_user(db, task_id, user_id),
        "Task already assigned to this user",
    )


def set_user_task_completion(db: Session, session: AuthSession, user_task_id: str, completed: bool) -> UserTask:
    row = storage.get_user_task(db, user_task_id)
    if not row or row.user_id != session.user_id:
        raise NotFoundError("Assignment", user_task_id)
    return storage.update_user_task_completion(db, row, completed)


def submit_task(db: Session, session: AuthSession, task_id: str, content: str) -> TaskSubmission:
    if not storage.get_user(db, session.user_id):
        raise UnauthorizedError("User not found")
    if not storage.get_task(db, task_id):
        raise NotFoundError("Task", task_id)
    text = (content or "").strip()
    if not text:
        raise ValidationError("Submission content is required", field="content")
    submission = insert_or_conflict(
        db,
        lambda: storage.create_task_submission(db, task_id=task_id, user_id=session.user_id, content=text),
        ALREADY_SUBMITTED,
    )
    logger.info("Task submitted: task=%s user=%s", task_id, session.user_id)
    return submission


def get_own_submission(db: Session, session: AuthSession, task_id: str) -> TaskSubmission | None:
    return storage.get_user_task_submission(db, session.user_id, task_id)


def rate_submission(
    db: Session,
    session: AuthSession,
    submission_id: str,
    *,
    rating: Any,
    feedback: Any,
) -> TaskSubmission:
    if not session.is_admin:
        raise ForbiddenError("Admin access required")
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}", field="rating")
    feedback_text = feedback if isinstance(feedback, str) else ""
    if len(feedback_text) < settings.FEEDBACK_MIN_LENGTH:
        raise ValidationError(
            f"Feedback must be at least {settings.FEEDBACK_MIN_LENGTH} characters",
            field="feedback",
        )

    submission = storage.get_task_submission(db, submission_id)
    if not submission:
        raise NotFoundError("Submission", submission_id)
    storage.update_task_submission_rating(db, submission, rating, feedback_text, session.user_id)
    logger.info("Submission rated: id=%s rating=%s by=%s", submission.id, rating, session.user_id)
    return submission


def list_submissions_for_task(db: Session, session: AuthSession, task_id: str) -> list[dict]:
    require_admin(session)
    if not storage.get_task(db, task_id):
        raise NotFoundError("Task", task_id)
    return [
        {"submission": submission, "user": storage.get_user(db, submission.user_id)}
        for submission in storage.list_task_submissions(db, task_id)
    ]
