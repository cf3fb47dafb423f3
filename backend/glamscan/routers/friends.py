import logging
from typing import List, Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..database import get_db_session
from ..exceptions import NotFoundError, ValidationError
from ..security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/friends", tags=["friends"])


def _existing_relationship_message(relationship: models.Friend, user_id: int) -> str:
    if relationship.status == "accepted":
        return "You are already friends with this user."
    if relationship.status == "pending":
        return "A friend request is already pending with this user."
    if relationship.requester_id == user_id:
        return "You have blocked this user."
    return "You cannot send a request to this user."


@router.post("/send-request", response_model=schemas.SuccessResponse, summary="Send Friend Request")
async def send_friend_request(
    payload: schemas.FriendRequestCreate,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    logger.info(f"POST /friends/send-request - From: {user.id}, To: {payload.addressee_id}")
    if payload.addressee_id == user.id:
        raise ValidationError("You cannot send a friend request to yourself.")
    if crud.users.get_user(db, payload.addressee_id) is None:
        raise NotFoundError("User not found")

    relationship = crud.friends.get_relationship(db, user.id, payload.addressee_id)
    if relationship is not None:
        raise ValidationError(_existing_relationship_message(relationship, user.id))

    crud.friends.send_request(db, requester=user, addressee_id=payload.addressee_id)
    return {"success": True}


@router.post("/respond-request", response_model=schemas.FriendRespondResponse, summary="Respond To Friend Request")
async def respond_to_friend_request(
    payload: schemas.FriendRespondRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    logger.info(f"POST /friends/respond-request - User: {user.id}, Requester: {payload.requester_id}, Action: {payload.action}")
    db_request = crud.friends.get_pending_request(db, requester_id=payload.requester_id, addressee_id=user.id)
    if db_request is None:
        raise NotFoundError("Friend request not found or already handled.")

    if payload.action == "accept":
        crud.friends.accept_request(db, db_request, accepter=user)
    elif payload.action == "decline":
        crud.friends.decline_request(db, db_request)
    else:
        crud.friends.block_user(db, blocker_id=user.id, blocked_id=payload.requester_id, db_request=db_request)
    return {"success": True, "action": payload.action}


@router.get("/list", response_model=List[schemas.FriendListItem], summary="List Friends")
async def list_friends(
    filter: Literal["all", "pending_sent", "pending_received", "blocked"] = Query("all"),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    return crud.friends.list_friends(db, user.id, filter=filter)


@router.get("/search", response_model=List[schemas.FriendSearchResult], summary="Search Users")
async def search_users(
    query: str = Query(..., min_length=2, max_length=100),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    return crud.friends.search_users(db, user.id, query.strip())
