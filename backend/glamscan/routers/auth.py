import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import crud, models, schemas, security
from ..config import settings
from ..database import get_db_session, utcnow
from ..exceptions import AuthenticationError, ConflictError
from ..rate_limiter import auth_key, auth_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/register_with_password",
    response_model=schemas.UserEnvelope,
    summary="Register With Password",
    description="Creates an account, opens a session and sets the session cookie."
)
async def register_with_password(
    payload: schemas.RegisterRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db_session)
):
    logger.info(f"POST /auth/register_with_password - Email: '{payload.email}'")
    auth_limiter.enforce(
        request,
        identifier=auth_key(request, payload.email),
        message="Too many registration attempts. Please try again later.",
    )

    if crud.users.get_user_by_email(db, payload.email) is not None:
        logger.warning(f"Registration rejected, email already in use: {payload.email}")
        raise ConflictError("Email already in use")

    try:
        db_user = crud.users.create_user_with_password(
            db,
            email=payload.email,
            display_name=payload.display_name,
            password_hash=security.hash_password(payload.password),
            gender=payload.gender,
        )
    except IntegrityError as e:
        # Lost a race with a concurrent registration for the same email
        db.rollback()
        raise ConflictError("Email already in use") from e

    db_session = crud.users.create_session(db, user_id=db_user.id)
    security.set_session_cookie(response, db_session.id)
    logger.info(f"Registered user ID: {db_user.id}")
    return {"user": db_user}


@router.post(
    "/login_with_password",
    response_model=schemas.UserEnvelope,
    summary="Log In With Password"
)
async def login_with_password(
    payload: schemas.LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db_session)
):
    logger.info(f"POST /auth/login_with_password - Email: '{payload.email}'")
    auth_limiter.enforce(
        request,
        identifier=auth_key(request, payload.email),
        message="Too many login attempts. Please try again later.",
    )

    db_user = crud.users.get_user_by_email(db, payload.email)
    password_hash = crud.users.get_password_hash(db, db_user.id) if db_user else None
    if password_hash is None or not security.verify_password(payload.password, password_hash):
        logger.warning(f"Failed login for {payload.email}")
        raise AuthenticationError("Invalid email or password")

    db_session = crud.users.create_session(db, user_id=db_user.id)
    security.set_session_cookie(response, db_session.id)
    return {"user": db_user}


@router.post("/logout", response_model=schemas.SuccessResponse, summary="Log Out")
async def logout(request: Request, response: Response, db: Session = Depends(get_db_session)):
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if session_id:
        crud.users.delete_session(db, session_id=session_id)
    security.clear_session_cookie(response)
    return {"success": True}


@router.get(
    "/session",
    response_model=schemas.SessionResponse,
    summary="Current Session",
    description="Returns the signed-in user and refreshes the session's sliding expiry."
)
async def get_session(
    request: Request,
    response: Response,
    db: Session = Depends(get_db_session)
):
    auth_limiter.enforce(
        request,
        identifier=auth_key(request),
        message="Too many session validation attempts. Please try again later.",
    )
    db_session: models.UserSession = security.get_current_session(request, db)

    lifetime = timedelta(seconds=settings.SESSION_EXPIRATION_SECONDS)
    is_near_expiry = (utcnow() - db_session.last_accessed) > lifetime * 0.8

    db_session = crud.users.refresh_session(db, db_session)
    security.set_session_cookie(response, db_session.id)
    return {
        "user": db_session.user,
        "session_info": {"is_near_expiry": is_near_expiry, "expires_at": db_session.expires_at},
    }
