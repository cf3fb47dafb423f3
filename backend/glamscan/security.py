"""
Password hashing, session cookies and the FastAPI auth dependencies.
"""
import logging
from typing import Optional

import bcrypt
from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from . import crud, models
from .config import settings
from .database import get_db_session
from .exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes and newer releases refuse longer input
_BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


def set_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        max_age=settings.SESSION_EXPIRATION_SECONDS,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME, path="/")


def _load_session(request: Request, db: Session) -> Optional[models.UserSession]:
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not session_id:
        return None
    return crud.users.get_active_session(db, session_id=session_id)


# --- Dependencies ---

def get_current_session(request: Request, db: Session = Depends(get_db_session)) -> models.UserSession:
    session = _load_session(request, db)
    if session is None or session.user is None:
        raise AuthenticationError("Not authenticated")
    return session


def get_current_user(session: models.UserSession = Depends(get_current_session)) -> models.User:
    return session.user


def get_optional_user(request: Request, db: Session = Depends(get_db_session)) -> Optional[models.User]:
    session = _load_session(request, db)
    return session.user if session is not None else None


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != "admin":
        logger.warning(f"User {user.id} attempted an admin-only action")
        raise AuthorizationError("Admin access required")
    return user
