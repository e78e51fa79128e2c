from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.serializers import announcement_to_dict, resource_to_dict, week_to_dict
from auth.utils import get_auth_session
from db import storage
from db.database import get_db
from services.errors import NotFoundError

router = APIRouter(tags=["content"], dependencies=[Depends(get_auth_session)])


@router.get("/weeks")
def list_weeks(db: Session = Depends(get_db)):
    return [week_to_dict(w) for w in storage.list_weeks(db)]


@router.get("/weeks/{week_id}")
def get_week(week_id: str, db: Session = Depends(get_db)):
    week = storage.get_week(db, week_id)
    if not week:
        raise NotFoundError("Week", week_id)
    return week_to_dict(week)


@router.get("/resources")
def list_resources(db: Session = Depends(get_db)):
    return [resource_to_dict(r) for r in storage.list_resources(db)]


@router.get("/announcements")
def list_announcements(limit: int = 5, db: Session = Depends(get_db)):
    return [announcement_to_dict(a) for a in storage.list_announcements(db, limit=max(1, min(limit, 100)))]
