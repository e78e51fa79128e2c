from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from auth.utils import AuthSession, require_admin
from config import settings
from db import storage
from db.models import Message, User
from services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllUsers:
    kind = "all"


@dataclass(frozen=True)
class ByWeek:
    week_number: int
    kind = "week"


GroupFilter = AllUsers | ByWeek


def group_filter_of(message: Message) -> GroupFilter | None:
    if not message.is_group_message:
        return None
    if message.group_scope == ByWeek.kind and message.group_week_number is not None:
        return ByWeek(week_number=int(message.group_week_number))
    return AllUsers()


def group_filter_matches(group_filter: GroupFilter, user: User) -> bool:
    if isinstance(group_filter, AllUsers):
        return True
    if isinstance(group_filter, ByWeek):
        return int(user.current_week or 0) == group_filter.week_number
    raise TypeError(f"Unknown group filter: {group_filter!r}")


def group_filter_to_dict(group_filter: GroupFilter | None) -> dict | None:
    if group_filter is None:
        return None
    if isinstance(group_filter, ByWeek):
        return {"kind": ByWeek.kind, "week_number": group_filter.week_number}
    return {"kind": AllUsers.kind}


def send_message(
    db: Session,
    session: AuthSession,
    *,
    subject: str,
    content: str,
    recipient_id: str | None = None,
    group_filter: GroupFilter | None = None,
) -> Message:
    """Send an individual message (recipient_id) or a group message (group_filter), never both."""
    require_admin(session)
    if (recipient_id is None) == (group_filter is None):
        raise ValidationError("Provide exactly one of recipient_id or group_filter")
    if not (subject or "").strip():
        raise ValidationError("Subject is required", field="subject")
    if not (content or "").strip():
        raise ValidationError("Content is required", field="content")

    values = {
        "sender_id": session.user_id,
        "subject": subject.strip(),
        "content": content.strip(),
    }
    if recipient_id is not None:
        if not storage.get_user(db, recipient_id):
            raise NotFoundError("User", recipient_id)
        values.update(recipient_id=recipient_id, is_group_message=False)
    else:
        scope_week = None
        if isinstance(group_filter, ByWeek):
            if not 1 <= group_filter.week_number <= settings.PROGRAM_WEEKS:
                raise ValidationError(
                    f"week_number must be between 1 and {settings.PROGRAM_WEEKS}",
                    field="group_filter",
                )
            scope_week = group_filter.week_number
        values.update(
            recipient_id=None,
            is_group_message=True,
            group_scope=group_filter.kind,
            group_week_number=scope_week,
        )

    message = storage.create_message(db, **values)
    logger.info(
        "Message sent: id=%s group=%s recipient=%s",
        message.id,
        message.is_group_message,
        message.recipient_id,
    )
    return message


def list_inbox(db: Session, session: AuthSession) -> list[Message]:
    """Individual messages to the caller plus group messages whose filter matches them."""
    user = storage.get_user(db, session.user_id)
    if not user:
        raise NotFoundError("User", session.user_id)
    messages = storage.list_messages_for_recipient(db, user.id)
    for message in storage.list_group_messages(db):
        group_filter = group_filter_of(message)
        if group_filter is not None and group_filter_matches(group_filter, user):
            messages.append(message)
    messages.sort(key=lambda m: (m.sent_at, m.id), reverse=True)
    return messages


def list_sent(db: Session, session: AuthSession) -> list[Message]:
    require_admin(session)
    return storage.list_messages_sent_by(db, session.user_id)


def mark_read(db: Session, session: AuthSession, message_id: str) -> Message:
    """Stamp read_at on the caller's own message; group messages carry no per-recipient state."""
    message = storage.get_message(db, message_id)
    if not message:
        raise NotFoundError("Message", message_id)
    group_filter = group_filter_of(message)
    if group_filter is not None:
        user = storage.get_user(db, session.user_id)
        if not user or not group_filter_matches(group_filter, user):
            raise NotFoundError("Message", message_id)
        return message
    if message.recipient_id != session.user_id:
        raise NotFoundError("Message", message_id)
    return storage.mark_message_read(db, message)
