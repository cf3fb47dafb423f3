import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from .. import models
from ..config import settings
from ..database import utcnow


def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def create_user_with_password(db: Session, email: str, display_name: str, password_hash: str,
                              gender: Optional[str] = None) -> models.User:
    """
    Creates the user and their password row in one transaction.
    """
    db_user = models.User(email=email, display_name=display_name, gender=gender, role="user")
    db.add(db_user)
    db.flush()
    db.add(models.UserPassword(user_id=db_user.id, password_hash=password_hash))
    db.commit()
    db.refresh(db_user)
    return db_user


def get_password_hash(db: Session, user_id: int) -> Optional[str]:
    row = db.query(models.UserPassword).filter(models.UserPassword.user_id == user_id).first()
    return row.password_hash if row else None


def update_user_profile(db: Session, db_user: models.User, fields: Dict[str, Any]) -> models.User:
    for key, value in fields.items():
        setattr(db_user, key, value)
    db.commit()
    db.refresh(db_user)
    return db_user


def set_user_role(db: Session, email: str, role: str) -> Optional[models.User]:
    db_user = get_user_by_email(db, email)
    if db_user is None:
        return None
    db_user.role = role
    db.commit()
    db.refresh(db_user)
    return db_user


# --- Sessions ---

def create_session(db: Session, user_id: int) -> models.UserSession:
    now = utcnow()
    db_session = models.UserSession(
        id=secrets.token_hex(32),
        user_id=user_id,
        created_at=now,
        last_accessed=now,
        expires_at=now + timedelta(seconds=settings.SESSION_EXPIRATION_SECONDS),
    )
    db.add(db_session)
    db.commit()
    db.refresh(db_session)
    return db_session


def get_active_session(db: Session, session_id: str) -> Optional[models.UserSession]:
    """Returns the session if it exists and has not expired; expired rows are removed."""
    db_session = db.query(models.UserSession).filter(models.UserSession.id == session_id).first()
    if db_session is None:
        return None
    if db_session.expires_at <= utcnow():
        db.delete(db_session)
        db.commit()
        return None
    return db_session


def refresh_session(db: Session, db_session: models.UserSession) -> models.UserSession:
    now = utcnow()
    db_session.last_accessed = now
    db_session.expires_at = now + timedelta(seconds=settings.SESSION_EXPIRATION_SECONDS)
    db.commit()
    db.refresh(db_session)
    return db_session


def delete_session(db: Session, session_id: str) -> bool:
    deleted = db.query(models.UserSession).filter(models.UserSession.id == session_id).delete()
    db.commit()
    return deleted > 0
