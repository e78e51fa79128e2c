from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.serializers import message_to_dict
from auth.utils import AuthSession, get_auth_session
from db.database import get_db
from services import message_service, stats_service

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("")
def inbox(
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    return [message_to_dict(m) for m in message_service.list_inbox(db, session)]


@router.get("/unread-count")
def unread_count(
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    return {"count": stats_service.unread_message_count(db, session.user_id)}


@router.post("/{message_id}/read")
def mark_read(
    message_id: str,
    session: AuthSession = Depends(get_auth_session),
    db: Session = Depends(get_db),
):
    message = message_service.mark_read(db, session, message_id)
    db.commit()
    return {"success": True, "message": message_to_dict(message)}
