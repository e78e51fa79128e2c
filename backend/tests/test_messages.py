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
from db.database import Base  # noqa: E402
from db.models import User  # noqa: E402
from services import message_service, stats_service  # noqa: E402
from services.errors import ForbiddenError, NotFoundError, ValidationError  # noqa: E402
from services.message_service import AllUsers, ByWeek  # noqa: E402


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _new_user(db, username: str, role: str = "user", current_week: int = 1) -> User:
    user = User(
        username=username,
        username_normalized=username.lower(),
        email=f"{username}@example.com",
        email_normalized=f"{username}@example.com",
        password_hash="hash",
        full_name=username.title(),
        role=role,
        current_week=current_week,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_individual_message_counts_as_unread_until_recipient_reads_it():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    alice = _new_user(db, "alice")
    message = message_service.send_message(
        db, session_for_user(admin), subject="Check-in", content="How is week one?", recipient_id=alice.id
    )
    db.commit()

    assert stats_service.unread_message_count(db, alice.id) == 1
    read = message_service.mark_read(db, session_for_user(alice), message.id)
    db.commit()
    assert read.read_at is not None
    assert stats_service.unread_message_count(db, alice.id) == 0


def test_only_recipient_can_mark_individual_message_read():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    alice = _new_user(db, "alice")
    bob = _new_user(db, "bob")
    message = message_service.send_message(
        db, session_for_user(admin), subject="Private", content="For alice", recipient_id=alice.id
    )
    db.commit()

    with pytest.raises(NotFoundError):
        message_service.mark_read(db, session_for_user(bob), message.id)
    with pytest.raises(NotFoundError):
        message_service.mark_read(db, session_for_user(bob), "missing")
    assert stats_service.unread_message_count(db, alice.id) == 1


def test_group_messages_reach_matching_users_and_never_count_unread():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    week_one = _new_user(db, "alice", current_week=1)
    week_three = _new_user(db, "bob", current_week=3)

    broadcast = message_service.send_message(
        db, session_for_user(admin), subject="Hello all", content="Welcome", group_filter=AllUsers()
    )
    week_note = message_service.send_message(
        db, session_for_user(admin), subject="Week 3", content="Halfway-ish", group_filter=ByWeek(week_number=3)
    )
    db.commit()

    alice_inbox = {m.id for m in message_service.list_inbox(db, session_for_user(week_one))}
    bob_inbox = {m.id for m in message_service.list_inbox(db, session_for_user(week_three))}
    assert alice_inbox == {broadcast.id}
    assert bob_inbox == {broadcast.id, week_note.id}

    assert stats_service.unread_message_count(db, week_three.id) == 0
    assert message_service.mark_read(db, session_for_user(week_three), week_note.id).read_at is None
    with pytest.raises(NotFoundError):
        message_service.mark_read(db, session_for_user(week_one), week_note.id)


def test_group_filter_round_trips_through_storage():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    message = message_service.send_message(
        db, session_for_user(admin), subject="Week 2", content="Focus", group_filter=ByWeek(week_number=2)
    )
    assert message.is_group_message is True
    assert message.recipient_id is None
    assert message_service.group_filter_of(message) == ByWeek(week_number=2)
    assert message_service.group_filter_to_dict(message_service.group_filter_of(message)) == {
        "kind": "week",
        "week_number": 2,
    }


def test_send_requires_admin_and_exactly_one_target():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    alice = _new_user(db, "alice")
    admin_session = session_for_user(admin)

    with pytest.raises(ForbiddenError):
        message_service.send_message(
            db, session_for_user(alice), subject="Hi", content="x", recipient_id=admin.id
        )
    with pytest.raises(ValidationError):
        message_service.send_message(db, admin_session, subject="Hi", content="x")
    with pytest.raises(ValidationError):
        message_service.send_message(
            db, admin_session, subject="Hi", content="x", recipient_id=alice.id, group_filter=AllUsers()
        )
    with pytest.raises(ValidationError):
        message_service.send_message(
            db, admin_session, subject="Hi", content="x", group_filter=ByWeek(week_number=9)
        )
    with pytest.raises(NotFoundError):
        message_service.send_message(db, admin_session, subject="Hi", content="x", recipient_id="missing")


def test_inbox_is_newest_first_and_sent_list_is_admin_only():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    alice = _new_user(db, "alice")
    first = message_service.send_message(
        db, session_for_user(admin), subject="One", content="first", recipient_id=alice.id
    )
    second = message_service.send_message(
        db, session_for_user(admin), subject="Two", content="second", group_filter=AllUsers()
    )
    db.commit()

    inbox = message_service.list_inbox(db, session_for_user(alice))
    sent_order = sorted([first, second], key=lambda m: (m.sent_at, m.id), reverse=True)
    assert [m.id for m in inbox] == [m.id for m in sent_order]

    assert len(message_service.list_sent(db, session_for_user(admin))) == 2
    with pytest.raises(ForbiddenError):
        message_service.list_sent(db, session_for_user(alice))
