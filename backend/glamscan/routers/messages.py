import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..database import get_db_session
from ..exceptions import AuthorizationError, NotFoundError, ValidationError
from ..rate_limiter import message_limiter
from ..security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


def _require_participant(db: Session, conversation_id: int, user_id: int) -> None:
    if not crud.messages.is_participant(db, conversation_id, user_id):
        logger.warning(f"User {user_id} denied access to conversation {conversation_id}")
        raise AuthorizationError("You are not a participant in this conversation.")


def _parse_cursor(cursor: Optional[str]) -> Optional[Tuple[datetime, int]]:
    """Splits an `"<iso timestamp>|<message id>"` cursor."""
    if not cursor:
        return None
    timestamp, _, message_id = cursor.rpartition("|")
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        parsed_id = int(message_id)
    except ValueError as e:
        raise ValidationError("Invalid cursor") from e
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed, parsed_id


@router.post(
    "/send",
    response_model=schemas.MessageResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(message_limiter)],
    summary="Send Message",
    description="Sends into an existing conversation, or to a recipient (opening a 1:1 conversation if needed)."
)
async def send_message(
    payload: schemas.MessageSendRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    conversation_id = payload.conversation_id
    recipient_id = None

    if conversation_id is not None:
        _require_participant(db, conversation_id, user.id)
    else:
        if payload.recipient_id == user.id:
            raise ValidationError("You cannot send a message to yourself.")
        if crud.users.get_user(db, payload.recipient_id) is None:
            raise NotFoundError("Recipient not found")
        if crud.friends.is_blocked_between(db, user.id, payload.recipient_id):
            raise AuthorizationError("You cannot message this user.")
        existing = crud.messages.find_direct_conversation(db, user.id, payload.recipient_id)
        if existing is not None:
            conversation_id = existing.id
        else:
            recipient_id = payload.recipient_id

    db_message = crud.messages.send_message(
        db,
        sender_id=user.id,
        content=payload.content,
        message_type=payload.message_type,
        metadata=payload.metadata,
        conversation_id=conversation_id,
        recipient_id=recipient_id,
    )
    logger.info(f"User {user.id} sent message {db_message.id} in conversation {db_message.conversation_id}")
    return crud.messages.to_message_response(db_message)


@router.get("/conversations", response_model=List[schemas.ConversationSummary], summary="Inbox")
async def list_conversations(
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    return crud.messages.list_conversations(db, user.id)


@router.get(
    "/conversation",
    response_model=schemas.ConversationMessagesResponse,
    summary="Conversation Messages",
    description="Newest first. Pass nextCursor back as cursor for older messages. Fetched messages are marked read."
)
async def read_conversation(
    conversation_id: int = Query(..., alias="conversationId", ge=1),
    cursor: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    _require_participant(db, conversation_id, user.id)
    rows, next_cursor = crud.messages.get_conversation_messages(
        db, conversation_id, user.id, cursor=_parse_cursor(cursor), limit=limit
    )
    return {
        "messages": [crud.messages.to_message_response(message) for message in rows],
        "next_cursor": next_cursor,
    }


@router.post("/mark-read", response_model=schemas.ConversationReadResponse, summary="Mark Conversation Read")
async def mark_conversation_read(
    payload: schemas.ConversationReadRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    _require_participant(db, payload.conversation_id, user.id)
    marked = crud.messages.mark_conversation_read(db, payload.conversation_id, user.id)
    return {"success": True, "marked_as_read_count": marked}
