from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.serializers import challenge_to_dict, user_challenge_to_dict, week_to_dict
from auth.utils import AuthSession, get_auth_session
from db.database import get_db
from services import challenge_service

router = APIRouter(prefix="/challenges", tags=["challenges"])


@router.get("/user")
def list_user_challenges(
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    return [
        {
            **challenge_to_dict(row["challenge"]),
            "user_challenge": user_challenge_to_dict(row["user_challenge"]),
            "week": week_to_dict(row["week"]),
        }
        for row in challenge_service.list_challenges_for_user(db, session)
    ]


@router.post("/{challenge_id}/toggle")
def toggle_challenge(
    challenge_id: str,
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    row = challenge_service.toggle_challenge(db, session, challenge_id)
    db.commit()
    db.refresh(row)
    return {"success": True, "user_challenge": user_challenge_to_dict(row)}
