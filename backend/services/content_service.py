from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from auth.utils import AuthSession, require_admin
from config import settings
from db import storage
from db.models import Announcement, Resource, Week
from services.errors import ValidationError
from services.uniqueness import insert_or_conflict

logger = logging.getLogger(__name__)

RESOURCE_CATEGORIES = ("Self-Discipline", "Health", "Business", "Mindfulness")
RESOURCE_TYPES = ("video", "pdf", "article")


def _required(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"`{field}` is required", field=field)
    return text


def create_week(
    db: Session,
    session: AuthSession,
    *,
    week_number: int,
    title: str,
    description: str,
    icon: str,
    color: str,
) -> Week:
    require_admin(session)
    if not 1 <= int(week_number) <= settings.PROGRAM_WEEKS:
        raise ValidationError(f"week_number must be between 1 and {settings.PROGRAM_WEEKS}", field="week_number")
    return insert_or_conflict(
        db,
        lambda: storage.create_week(
            db,
            week_number=int(week_number),
            title=_required(title, "title"),
            description=_required(description, "description"),
            icon=_required(icon, "icon"),
            color=_required(color, "color"),
        ),
        f"Week {week_number} already exists",
    )


def create_resource(
    db: Session,
    session: AuthSession,
    *,
    title: str,
    description: str,
    category: str,
    type: str,
    url: str,
) -> Resource:
    require_admin(session)
    if category not in RESOURCE_CATEGORIES:
        raise ValidationError(f"category must be one of {list(RESOURCE_CATEGORIES)}", field="category")
    resource_type = (type or "").strip().lower()
    if resource_type not in RESOURCE_TYPES:
        raise ValidationError(f"type must be one of {list(RESOURCE_TYPES)}", field="type")

    resource = storage.create_resource(
        db,
        title=_required(title, "title"),
        description=_required(description, "description"),
        category=category,
        type=resource_type,
        url=_required(url, "url"),
        created_by=session.user_id,
    )
    logger.info("Resource created: id=%s category=%s", resource.id, category)
    return resource


def create_announcement(db: Session, session: AuthSession, *, title: str, content: str) -> Announcement:
    require_admin(session)
    announcement = storage.create_announcement(
        db,
        title=_required(title, "title"),
        content=_required(content, "content"),
        created_by=session.user_id,
    )
    logger.info("Announcement created: id=%s", announcement.id)
    return announcement
