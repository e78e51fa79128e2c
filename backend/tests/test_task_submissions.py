from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth.utils import session_for_user  # noqa: E402
from db import storage  # noqa: E402
from db.database import Base, enable_sqlite_pragmas  # noqa: E402
from db.models import TaskSubmission, User, UserTask  # noqa: E402
from services import stats_service, task_service  # noqa: E402
from services.errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError, ValidationError  # noqa: E402
from services.uniqueness import insert_or_conflict  # noqa: E402


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _new_user(db, username: str, role: str = "user") -> User:
    user = User(
        username=username,
        username_normalized=username.lower(),
        email=f"{username}@example.com",
        email_normalized=f"{username}@example.com",
        password_hash="hash",
        full_name=username.title(),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _new_task(db, admin: User, assigned_to_all: bool = True, title: str = "Personal assessment"):
    task = task_service.create_task(
        db,
        session_for_user(admin),
        title=title,
        description="Reflect on every life area",
        assigned_to_all=assigned_to_all,
    )
    db.commit()
    return task


GOOD_FEEDBACK = "solid effort, keep iterating on depth"


def test_second_submission_for_same_task_conflicts():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    user = _new_user(db, "member")
    task = _new_task(db, admin)
    session = session_for_user(user)

    task_service.submit_task(db, session, task.id, "My first answer")
    db.commit()
    with pytest.raises(ConflictError) as exc:
        task_service.submit_task(db, session, task.id, "Trying again")
    assert exc.value.message == task_service.ALREADY_SUBMITTED
    assert db.query(TaskSubmission).filter(TaskSubmission.task_id == task.id).count() == 1


def test_submission_requires_existing_task_and_content():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    user = _new_user(db, "member")
    task = _new_task(db, admin)

    with pytest.raises(NotFoundError):
        task_service.submit_task(db, session_for_user(user), "missing", "hello")
    with pytest.raises(ValidationError):
        task_service.submit_task(db, session_for_user(user), task.id, "   ")


@pytest.mark.parametrize("rating", [0, 6, "4", 4.5, True, None])
def test_rating_outside_one_to_five_is_rejected(rating):
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    user = _new_user(db, "member")
    task = _new_task(db, admin)
    submission = task_service.submit_task(db, session_for_user(user), task.id, "answer")
    db.commit()

    with pytest.raises(ValidationError) as exc:
        task_service.rate_submission(db, session_for_user(admin), submission.id, rating=rating, feedback=GOOD_FEEDBACK)
    assert exc.value.field == "rating"
    db.refresh(submission)
    assert submission.rating is None


def test_feedback_minimum_length_boundary():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    user = _new_user(db, "member")
    task = _new_task(db, admin)
    submission = task_service.submit_task(db, session_for_user(user), task.id, "answer")
    db.commit()

    with pytest.raises(ValidationError) as exc:
        task_service.rate_submission(db, session_for_user(admin), submission.id, rating=3, feedback="x" * 19)
    assert exc.value.field == "feedback"

    rated = task_service.rate_submission(db, session_for_user(admin), submission.id, rating=3, feedback="x" * 20)
    db.commit()
    assert rated.rating == 3
    assert rated.feedback == "x" * 20
    assert rated.reviewed_by == admin.id
    assert rated.reviewed_at is not None


def test_non_admin_cannot_rate():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    user = _new_user(db, "member")
    task = _new_task(db, admin)
    submission = task_service.submit_task(db, session_for_user(user), task.id, "answer")
    db.commit()

    with pytest.raises(ForbiddenError):
        task_service.rate_submission(db, session_for_user(user), submission.id, rating=5, feedback=GOOD_FEEDBACK)


def test_rating_unknown_submission_is_not_found():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    with pytest.raises(NotFoundError):
        task_service.rate_submission(db, session_for_user(admin), "missing", rating=4, feedback=GOOD_FEEDBACK)


def test_task_view_lists_each_visible_task_once_with_own_submission():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    alice = _new_user(db, "alice")
    bob = _new_user(db, "bob")
    everyone = _new_task(db, admin, assigned_to_all=True, title="For everyone")
    private = _new_task(db, admin, assigned_to_all=False, title="Just alice")
    hidden = _new_task(db, admin, assigned_to_all=False, title="Nobody")

    # Explicit assignment on an everyone-task must not duplicate it.
    task_service.assign_task(db, session_for_user(admin), everyone.id, alice.id)
    task_service.assign_task(db, session_for_user(admin), private.id, alice.id)
    db.commit()
    task_service.submit_task(db, session_for_user(bob), everyone.id, "bob's answer")
    db.commit()

    alice_rows = stats_service.tasks_with_submissions(db, session_for_user(alice))
    alice_ids = [row["task"].id for row in alice_rows]
    assert sorted(alice_ids) == sorted([everyone.id, private.id])
    assert hidden.id not in alice_ids
    assert all(row["submission"] is None for row in alice_rows)

    bob_rows = stats_service.tasks_with_submissions(db, session_for_user(bob))
    assert [row["task"].id for row in bob_rows] == [everyone.id]
    assert bob_rows[0]["submission"].content == "bob's answer"


def test_duplicate_assignment_conflicts():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    user = _new_user(db, "member")
    task = _new_task(db, admin, assigned_to_all=False)

    task_service.assign_task(db, session_for_user(admin), task.id, user.id)
    db.commit()
    with pytest.raises(ConflictError):
        task_service.assign_task(db, session_for_user(admin), task.id, user.id)
    assert db.query(UserTask).count() == 1


def test_assignment_completion_is_owner_only():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    alice = _new_user(db, "alice")
    bob = _new_user(db, "bob")
    task = _new_task(db, admin, assigned_to_all=False)
    row = task_service.assign_task(db, session_for_user(admin), task.id, alice.id)
    db.commit()

    with pytest.raises(NotFoundError):
        task_service.set_user_task_completion(db, session_for_user(bob), row.id, True)

    done = task_service.set_user_task_completion(db, session_for_user(alice), row.id, True)
    assert done.completed is True
    assert done.completed_at is not None
    undone = task_service.set_user_task_completion(db, session_for_user(alice), row.id, False)
    assert undone.completed_at is None


def test_update_and_delete_task():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    user = _new_user(db, "member")
    task = _new_task(db, admin)
    task_id = task.id
    task_service.submit_task(db, session_for_user(user), task_id, "answer")
    db.commit()

    updated = task_service.update_task(db, session_for_user(admin), task_id, {"title": "Renamed"})
    assert updated.title == "Renamed"
    with pytest.raises(ValidationError):
        task_service.update_task(db, session_for_user(admin), task_id, {"description": " "})

    task_service.delete_task(db, session_for_user(admin), task_id)
    db.commit()
    assert storage.get_task(db, task_id) is None
    assert db.query(TaskSubmission).count() == 0
    with pytest.raises(NotFoundError):
        task_service.delete_task(db, session_for_user(admin), task_id)


def test_submission_from_deleted_account_is_unauthorized():
    db = _new_db()
    admin = _new_user(db, "coach", role="admin")
    user = _new_user(db, "member")
    task = _new_task(db, admin)
    session = session_for_user(user)
    db.delete(user)
    db.commit()

    with pytest.raises(UnauthorizedError) as exc:
        task_service.submit_task(db, session, task.id, "Answer from beyond")
    assert exc.value.message == "User not found"
    assert db.query(TaskSubmission).count() == 0


def test_insert_or_conflict_only_maps_unique_violations():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    enable_sqlite_pragmas(engine)
    Base.metadata.create_all(bind=engine)
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    admin = _new_user(db, "coach", role="admin")
    task = _new_task(db, admin)

    with pytest.raises(IntegrityError):
        insert_or_conflict(
            db,
            lambda: storage.create_task_submission(db, task_id=task.id, user_id="no-such-user", content="x"),
            task_service.ALREADY_SUBMITTED,
        )
    with pytest.raises(IntegrityError):
        insert_or_conflict(
            db,
            lambda: storage.create_task_submission(db, task_id=task.id, user_id=admin.id, content=None),
            task_service.ALREADY_SUBMITTED,
        )
    assert db.query(TaskSubmission).count() == 0

    insert_or_conflict(
        db,
        lambda: storage.create_task_submission(db, task_id=task.id, user_id=admin.id, content="first"),
        task_service.ALREADY_SUBMITTED,
    )
    with pytest.raises(ConflictError):
        insert_or_conflict(
            db,
            lambda: storage.create_task_submission(db, task_id=task.id, user_id=admin.id, content="second"),
            task_service.ALREADY_SUBMITTED,
        )
