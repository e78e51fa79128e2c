from __future__ import annotations

from datetime import date, datetime

from db.models import (
    Achievement,
    Announcement,
    Challenge,
    Journal,
    Message,
    Resource,
    Task,
    TaskSubmission,
    UserAchievement,
    UserChallenge,
    UserTask,
    Week,
)
from services.message_service import group_filter_of, group_filter_to_dict


def _iso(value: datetime | date | None) -> str | None:
    return value.isoformat() if value else None


def week_to_dict(week: Week | None) -> dict | None:
    if week is None:
        return None
    return {
        "id": week.id,
        "week_number": week.week_number,
        "title": week.title,
        "description": week.description,
        "icon": week.icon,
        "color": week.color,
    }


def challenge_to_dict(challenge: Challenge) -> dict:
    return {
        "id": challenge.id,
        "week_id": challenge.week_id,
        "title": challenge.title,
        "description": challenge.description,
        "type": challenge.type,
        "created_by": challenge.created_by,
        "created_at": _iso(challenge.created_at),
    }


def user_challenge_to_dict(row: UserChallenge | None) -> dict | None:
    if row is None:
        return None
    return {
        "id": row.id,
        "user_id": row.user_id,
        "challenge_id": row.challenge_id,
        "completed": bool(row.completed),
        "completed_at": _iso(row.completed_at),
    }


def journal_to_dict(journal: Journal | None) -> dict | None:
    if journal is None:
        return None
    return {
        "id": journal.id,
        "user_id": journal.user_id,
        "date": _iso(journal.entry_date),
        "achievement": journal.achievement,
        "challenge": journal.challenge,
        "gratitude": journal.gratitude,
        "mood": journal.mood,
        "created_at": _iso(journal.created_at),
    }


def resource_to_dict(resource: Resource) -> dict:
    return {
        "id": resource.id,
        "title": resource.title,
        "description": resource.description,
        "category": resource.category,
        "type": resource.type,
        "url": resource.url,
        "created_by": resource.created_by,
        "created_at": _iso(resource.created_at),
    }


def announcement_to_dict(announcement: Announcement) -> dict:
    return {
        "id": announcement.id,
        "title": announcement.title,
        "content": announcement.content,
        "created_by": announcement.created_by,
        "created_at": _iso(announcement.created_at),
    }


def achievement_to_dict(achievement: Achievement) -> dict:
    return {
        "id": achievement.id,
        "name": achievement.name,
        "description": achievement.description,
        "icon": achievement.icon,
        "criteria": achievement.criteria,
    }


def unlock_to_dict(unlock: UserAchievement, achievement: Achievement) -> dict:
    return {
        "id": unlock.id,
        "achievement_id": unlock.achievement_id,
        "unlocked_at": _iso(unlock.unlocked_at),
        "achievement": achievement_to_dict(achievement),
    }


def task_to_dict(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "week_id": task.week_id,
        "due_date": _iso(task.due_date),
        "assigned_to_all": bool(task.assigned_to_all),
        "created_by": task.created_by,
        "created_at": _iso(task.created_at),
    }


def submission_to_dict(submission: TaskSubmission | None) -> dict | None:
    if submission is None:
        return None
    return {
        "id": submission.id,
        "task_id": submission.task_id,
        "user_id": submission.user_id,
        "content": submission.content,
        "submitted_at": _iso(submission.submitted_at),
        "rating": submission.rating,
        "feedback": submission.feedback,
        "reviewed_at": _iso(submission.reviewed_at),
        "reviewed_by": submission.reviewed_by,
    }


def user_task_to_dict(row: UserTask) -> dict:
    return {
        "id": row.id,
        "task_id": row.task_id,
        "user_id": row.user_id,
        "assigned_at": _iso(row.assigned_at),
        "completed": bool(row.completed),
        "completed_at": _iso(row.completed_at),
    }


def message_to_dict(message: Message) -> dict:
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "recipient_id": message.recipient_id,
        "subject": message.subject,
        "content": message.content,
        "sent_at": _iso(message.sent_at),
        "read_at": _iso(message.read_at),
        "is_group_message": bool(message.is_group_message),
        "group_filter": group_filter_to_dict(group_filter_of(message)),
    }
