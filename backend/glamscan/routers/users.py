import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..database import get_db_session
from ..exceptions import ValidationError
from ..rate_limiter import general_limiter
from ..security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user", tags=["user"])


@router.get("/profile", response_model=schemas.ProfileResponse, summary="Get Own Profile")
async def read_profile(user: models.User = Depends(get_current_user)):
    return user


@router.post(
    "/profile",
    response_model=schemas.ProfileEnvelope,
    dependencies=[Depends(general_limiter)],
    summary="Update Own Profile",
    description="Updates display name and/or avatar URL. Sending avatarUrl as null clears it."
)
async def update_profile(
    payload: schemas.ProfileUpdateRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    fields = {}
    if payload.display_name is not None:
        fields["display_name"] = payload.display_name
    if "avatar_url" in payload.model_fields_set:
        fields["avatar_url"] = payload.avatar_url
    if not fields:
        raise ValidationError("No fields to update were provided.")

    logger.info(f"POST /user/profile - User: {user.id}, Fields: {sorted(fields)}")
    db_user = crud.users.update_user_profile(db, user, fields)
    return {"user": db_user}
