from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.serializers import journal_to_dict
from auth.utils import AuthSession, get_auth_session
from db.database import get_db
from services import journal_service

router = APIRouter(prefix="/journals", tags=["journals"])


class JournalCreateRequest(BaseModel):
    achievement: Optional[str] = Field(default=None, max_length=5000)
    challenge: Optional[str] = Field(default=None, max_length=5000)
    gratitude: Optional[str] = Field(default=None, max_length=5000)
    mood: Optional[str] = None


@router.get("")
def list_journals(
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    return [journal_to_dict(j) for j in journal_service.list_journals(db, session)]


@router.get("/today")
def today_journal(
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    return journal_to_dict(journal_service.get_today_journal(db, session))


@router.post("", status_code=201)
def create_journal(
    req: JournalCreateRequest,
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    journal = journal_service.create_journal(
        db,
        session,
        achievement=req.achievement,
        challenge=req.challenge,
        gratitude=req.gratitude,
        mood=req.mood,
    )
    db.commit()
    db.refresh(journal)
    return journal_to_dict(journal)
