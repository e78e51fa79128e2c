from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.serializers import (
    achievement_to_dict,
    announcement_to_dict,
    challenge_to_dict,
    message_to_dict,
    resource_to_dict,
    submission_to_dict,
    task_to_dict,
    unlock_to_dict,
    user_task_to_dict,
    week_to_dict,
)
from auth.utils import AuthSession, require_admin_session
from db import storage
from db.database import get_db
from services import (
    achievement_service,
    challenge_service,
    content_service,
    message_service,
    profile_service,
    stats_service,
    task_service,
)
from services.errors import NotFoundError
from services.profile_service import user_to_dict

router = APIRouter(prefix="/admin", tags=["admin"])


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class UserWeekRequest(BaseModel):
    current_week: Any


class WeekCreateRequest(BaseModel):
    week_number: int
    title: str
    description: str
    icon: str
    color: str


class ChallengeCreateRequest(BaseModel):
    week_id: str
    title: str = Field(max_length=200)
    description: str = Field(default="", max_length=2000)
    type: str = "daily"


class ResourceCreateRequest(BaseModel):
    title: str = Field(max_length=200)
    description: str = Field(max_length=2000)
    category: str
    type: str
    url: str = Field(max_length=2000)


class AnnouncementCreateRequest(BaseModel):
    title: str = Field(max_length=200)
    content: str = Field(max_length=10000)


class AchievementCreateRequest(BaseModel):
    name: str = Field(max_length=100)
    description: str = Field(default="", max_length=1000)
    icon: str = "Award"
    criteria: dict[str, Any]


class AchievementGrantRequest(BaseModel):
    user_id: str


class TaskCreateRequest(BaseModel):
    title: str = Field(max_length=200)
    description: str = Field(max_length=10000)
    week_id: Optional[str] = None
    due_date: Optional[datetime] = None
    assigned_to_all: bool = False


class TaskUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10000)
    week_id: Optional[str] = None
    due_date: Optional[datetime] = None
    assigned_to_all: Optional[bool] = None


class TaskAssignRequest(BaseModel):
    user_id: str


class RatingRequest(BaseModel):
    # Checked by task_service so bad ratings surface as domain validation errors.
    rating: Any = None
    feedback: Any = None


class AllUsersFilter(BaseModel):
    kind: Literal["all"]


class ByWeekFilter(BaseModel):
    kind: Literal["week"]
    week_number: int


class MessageSendRequest(BaseModel):
    subject: str = Field(max_length=200)
    content: str = Field(max_length=10000)
    recipient_id: Optional[str] = None
    group_filter: Optional[Annotated[Union[AllUsersFilter, ByWeekFilter], Field(discriminator="kind")]] = None


def _to_group_filter(req: MessageSendRequest) -> message_service.GroupFilter | None:
    if req.group_filter is None:
        return None
    if isinstance(req.group_filter, ByWeekFilter):
        return message_service.ByWeek(week_number=req.group_filter.week_number)
    return message_service.AllUsers()


# Stats and users


@router.get("/stats")
def get_stats(
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return stats_service.admin_stats(db, session)


@router.get("/users")
def list_users(
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return [user_to_dict(u) for u in profile_service.list_users(db, session)]


@router.get("/users/{user_id}")
def get_user(
    user_id: str,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    user = profile_service.get_user_for_admin(db, session, user_id)
    view = stats_service.profile(db, user)
    return {
        "user": user_to_dict(user),
        "achievements": [unlock_to_dict(row["unlock"], row["achievement"]) for row in view["achievements"]],
        "stats": view["stats"],
        "tasks": [user_task_to_dict(row) for row in storage.list_user_tasks(db, user.id)],
    }


@router.patch("/users/{user_id}/week")
def set_user_week(
    user_id: str,
    req: UserWeekRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    user = profile_service.set_user_week(db, session, user_id, req.current_week)
    db.commit()
    db.refresh(user)
    return user_to_dict(user)


@router.post("/users/{user_id}/complete-week")
def complete_user_week(
    user_id: str,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    row = profile_service.complete_week(db, session, user_id)
    db.commit()
    user = storage.get_user(db, user_id)
    return {
        "progress": {
            "id": row.id,
            "week_id": row.week_id,
            "completed": bool(row.completed),
            "completed_at": row.completed_at.isoformat() if row.completed_at else None,
        },
        "user": user_to_dict(user),
    }


# Program content


@router.post("/weeks", status_code=201)
def create_week(
    req: WeekCreateRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    week = content_service.create_week(db, session, **req.model_dump())
    db.commit()
    db.refresh(week)
    return week_to_dict(week)


@router.get("/challenges")
def list_challenges(
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return [
        {**challenge_to_dict(row["challenge"]), "week": week_to_dict(row["week"])}
        for row in challenge_service.list_challenges_with_week(db, session)
    ]


@router.post("/challenges", status_code=201)
def create_challenge(
    req: ChallengeCreateRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    challenge = challenge_service.create_challenge(db, session, **req.model_dump())
    db.commit()
    db.refresh(challenge)
    return challenge_to_dict(challenge)


@router.get("/resources")
def list_resources(
    _session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return [resource_to_dict(r) for r in storage.list_resources(db)]


@router.post("/resources", status_code=201)
def create_resource(
    req: ResourceCreateRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    resource = content_service.create_resource(db, session, **req.model_dump())
    db.commit()
    db.refresh(resource)
    return resource_to_dict(resource)


@router.get("/announcements")
def list_announcements(
    _session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return [announcement_to_dict(a) for a in storage.list_announcements(db)]


@router.post("/announcements", status_code=201)
def create_announcement(
    req: AnnouncementCreateRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    announcement = content_service.create_announcement(db, session, title=req.title, content=req.content)
    db.commit()
    db.refresh(announcement)
    return announcement_to_dict(announcement)


@router.get("/achievements")
def list_achievements(
    _session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return [achievement_to_dict(a) for a in storage.list_achievements(db)]


@router.post("/achievements", status_code=201)
def create_achievement(
    req: AchievementCreateRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    achievement = achievement_service.create_achievement(db, session, **req.model_dump())
    db.commit()
    db.refresh(achievement)
    return achievement_to_dict(achievement)


@router.post("/achievements/{achievement_id}/grant")
def grant_achievement(
    achievement_id: str,
    req: AchievementGrantRequest,
    _session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    if not storage.get_user(db, req.user_id):
        raise NotFoundError("User", req.user_id)
    unlock = achievement_service.grant_achievement(db, req.user_id, achievement_id)
    db.commit()
    db.refresh(unlock)
    return unlock_to_dict(unlock, storage.get_achievement(db, achievement_id))


# Tasks


@router.get("/tasks")
def list_tasks(
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return [task_to_dict(t) for t in task_service.list_all_tasks(db, session)]


@router.post("/tasks", status_code=201)
def create_task(
    req: TaskCreateRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    task = task_service.create_task(
        db,
        session,
        title=req.title,
        description=req.description,
        week_id=req.week_id,
        due_date=_naive_utc(req.due_date),
        assigned_to_all=req.assigned_to_all,
    )
    db.commit()
    db.refresh(task)
    return task_to_dict(task)


@router.patch("/tasks/{task_id}")
def update_task(
    task_id: str,
    req: TaskUpdateRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    changes = req.model_dump(exclude_unset=True)
    if "due_date" in changes:
        changes["due_date"] = _naive_utc(changes["due_date"])
    task = task_service.update_task(db, session, task_id, changes)
    db.commit()
    db.refresh(task)
    return task_to_dict(task)


@router.delete("/tasks/{task_id}")
def delete_task(
    task_id: str,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    task_service.delete_task(db, session, task_id)
    db.commit()
    return {"success": True}


@router.post("/tasks/{task_id}/assign", status_code=201)
def assign_task(
    task_id: str,
    req: TaskAssignRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    row = task_service.assign_task(db, session, task_id, req.user_id)
    db.commit()
    db.refresh(row)
    return user_task_to_dict(row)


@router.get("/tasks/{task_id}/submissions")
def list_task_submissions(
    task_id: str,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return [
        {
            **submission_to_dict(row["submission"]),
            "user": user_to_dict(row["user"]) if row["user"] else None,
        }
        for row in task_service.list_submissions_for_task(db, session, task_id)
    ]


@router.patch("/submissions/{submission_id}/rate")
def rate_submission(
    submission_id: str,
    req: RatingRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    submission = task_service.rate_submission(
        db, session, submission_id, rating=req.rating, feedback=req.feedback
    )
    db.commit()
    db.refresh(submission)
    return submission_to_dict(submission)


# Messages


@router.post("/messages", status_code=201)
def send_message(
    req: MessageSendRequest,
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    message = message_service.send_message(
        db,
        session,
        subject=req.subject,
        content=req.content,
        recipient_id=req.recipient_id,
        group_filter=_to_group_filter(req),
    )
    db.commit()
    db.refresh(message)
    return message_to_dict(message)


@router.get("/messages")
def list_sent_messages(
    session: AuthSession = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return [message_to_dict(m) for m in message_service.list_sent(db, session)]
