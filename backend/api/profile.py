from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.serializers import (
    announcement_to_dict,
    challenge_to_dict,
    journal_to_dict,
    unlock_to_dict,
    user_challenge_to_dict,
    week_to_dict,
)
from auth.models import ProfileUpdateRequest
from auth.utils import AuthSession, get_auth_session, get_current_user
from db.database import get_db
from db.models import User
from services import profile_service, stats_service
from services.profile_service import user_to_dict

router = APIRouter(tags=["profile"])


@router.get("/dashboard")
def dashboard(
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    view = stats_service.dashboard(db, session)
    return {
        "user": user_to_dict(view["user"]),
        "weeks": [week_to_dict(w) for w in view["weeks"]],
        "today_journal": journal_to_dict(view["today_journal"]),
        "recent_journals": [journal_to_dict(j) for j in view["recent_journals"]],
        "active_challenges": [
            {
                **user_challenge_to_dict(row["user_challenge"]),
                "challenge": challenge_to_dict(row["challenge"]),
            }
            for row in view["active_challenges"]
        ],
        "announcements": [announcement_to_dict(a) for a in view["announcements"]],
        "unread_messages": view["unread_messages"],
    }


@router.get("/profile")
def get_profile(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    view = stats_service.profile(db, user)
    return {
        "user": user_to_dict(view["user"]),
        "achievements": [unlock_to_dict(row["unlock"], row["achievement"]) for row in view["achievements"]],
        "stats": view["stats"],
    }


@router.patch("/profile")
def update_profile(
    req: ProfileUpdateRequest,
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    user = profile_service.update_profile(db, session, req.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(user)
    return user_to_dict(user)


@router.get("/profile/{user_id}")
def get_user_profile(
    user_id: str,
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    return user_to_dict(profile_service.get_user_for_admin(db, session, user_id))
