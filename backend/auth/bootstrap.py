import logging

from sqlalchemy.orm import Session

from auth.utils import MAX_PASSWORD_BYTES, Role, hash_password, normalize_email, normalize_username, password_too_long
from config import settings
from db import storage
from db.database import SessionLocal
from db.models import User
from services.seed_service import seed_database

logger = logging.getLogger(__name__)


def ensure_admin(db: Session) -> User:
    admin_username_raw = " ".join((settings.ADMIN_USERNAME or "").strip().split()) or "admin"
    admin_username_normalized = normalize_username(admin_username_raw)

    admin_user = storage.get_user_by_username(db, admin_username_normalized)
    if admin_user and admin_user.role == Role.ADMIN.value:
        return admin_user

    # Username taken by a regular account: pick a suffixed admin username.
    final_username = admin_username_raw
    final_normalized = admin_username_normalized
    if admin_user:
        suffix = 2
        while storage.get_user_by_username(db, normalize_username(f"{admin_username_raw}_{suffix}")):
            suffix += 1
        final_username = f"{admin_username_raw}_{suffix}"
        final_normalized = normalize_username(final_username)

    if password_too_long(settings.ADMIN_PASSWORD):
        raise RuntimeError(f"ADMIN_PASSWORD must be at most {MAX_PASSWORD_BYTES} bytes")

    email = (settings.ADMIN_EMAIL or "").strip()
    if storage.get_user_by_email(db, normalize_email(email)):
        local, _, domain = email.partition("@")
        email = f"{local}+{final_normalized}@{domain}"

    admin_user = storage.create_user(
        db,
        username=final_username,
        username_normalized=final_normalized,
        email=email,
        email_normalized=normalize_email(email),
        password_hash=hash_password(settings.ADMIN_PASSWORD),
        full_name=(settings.ADMIN_FULL_NAME or "Admin User").strip() or "Admin User",
        role=Role.ADMIN.value,
    )
    logger.info("Admin account created: %s", final_username)
    return admin_user


def ensure_admin_account() -> None:
    db: Session = SessionLocal()
    try:
        admin_user = ensure_admin(db)
        seed_database(db, admin_user, sample_content=settings.SEED_SAMPLE_CONTENT)
        db.commit()
    finally:
        db.close()
