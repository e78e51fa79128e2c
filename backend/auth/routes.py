from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from auth import service
from auth.models import AuthResponse, LoginRequest, SignupRequest, UserResponse
from auth.utils import get_current_user
from db.database import get_db
from db.models import User

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(req: SignupRequest, db: Session = Depends(get_db)):
    user, token = service.signup(
        db,
        username=req.username,
        email=req.email,
        password=req.password,
        full_name=req.full_name,
    )
    db.commit()
    db.refresh(user)
    return AuthResponse(user=UserResponse.model_validate(user), token=token)


@router.post("/login", response_model=AuthResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user, token = service.login(db, username=req.username, password=req.password)
    return AuthResponse(user=UserResponse.model_validate(user), token=token)


@router.get("/me", response_model=UserResponse)
def me(user: User = Depends(get_current_user)):
    return user


@router.post("/logout")
def logout():
    # Credentials are stateless; the client discards its token.
    return {"status": "ok"}
