from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.serializers import submission_to_dict, task_to_dict, user_task_to_dict
from auth.utils import AuthSession, get_auth_session
from db import storage
from db.database import get_db
from services import stats_service, task_service

router = APIRouter(prefix="/tasks", tags=["tasks"])


class TaskSubmitRequest(BaseModel):
    content: str = Field(min_length=1, max_length=20000)


class AssignmentCompletionRequest(BaseModel):
    completed: bool


@router.get("")
def list_tasks(
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    return [
        {**task_to_dict(row["task"]), "submission": submission_to_dict(row["submission"])}
        for row in stats_service.tasks_with_submissions(db, session)
    ]


@router.post("/{task_id}/submit", status_code=201)
def submit_task(
    task_id: str,
    req: TaskSubmitRequest,
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    submission = task_service.submit_task(db, session, task_id, req.content)
    db.commit()
    db.refresh(submission)
    return submission_to_dict(submission)


@router.get("/{task_id}/submission")
def get_submission(
    task_id: str,
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    return submission_to_dict(task_service.get_own_submission(db, session, task_id))


@router.get("/assignments")
def list_assignments(
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    return [user_task_to_dict(row) for row in storage.list_user_tasks(db, session.user_id)]


@router.patch("/assignments/{user_task_id}")
def set_assignment_completion(
    user_task_id: str,
    req: AssignmentCompletionRequest,
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    row = task_service.set_user_task_completion(db, session, user_task_id, req.completed)
    db.commit()
    db.refresh(row)
    return user_task_to_dict(row)
