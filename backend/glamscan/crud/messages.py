"""
Conversations and messages.

Read receipts are a JSON list of user ids on each message (`read_by`).
Membership tests run in Python over the fetched rows so the same code works on
every database backend; updates assign a fresh list so SQLAlchemy sees the change.
"""
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import utcnow


def is_participant(db: Session, conversation_id: int, user_id: int) -> bool:
    return (
        db.query(models.ConversationParticipant.id)
        .filter(
            models.ConversationParticipant.conversation_id == conversation_id,
            models.ConversationParticipant.user_id == user_id,
        )
        .first()
        is not None
    )


def find_direct_conversation(db: Session, user_a: int, user_b: int) -> Optional[models.Conversation]:
    """The existing one-to-one conversation between two users, if any."""
    joined_by_a = select(models.ConversationParticipant.conversation_id).where(
        models.ConversationParticipant.user_id == user_a
    )
    joined_by_b = select(models.ConversationParticipant.conversation_id).where(
        models.ConversationParticipant.user_id == user_b
    )
    row = (
        db.query(models.ConversationParticipant.conversation_id)
        .filter(
            models.ConversationParticipant.conversation_id.in_(joined_by_a),
            models.ConversationParticipant.conversation_id.in_(joined_by_b),
        )
        .group_by(models.ConversationParticipant.conversation_id)
        .having(func.count(models.ConversationParticipant.id) == 2)
        .first()
    )
    if row is None:
        return None
    return db.query(models.Conversation).filter(models.Conversation.id == row[0]).first()


def _read_by(message: models.Message) -> List[int]:
    return list(message.read_by or [])


def to_message_response(message: models.Message) -> schemas.MessageResponse:
    return schemas.MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        content=message.content,
        message_type=message.message_type,
        metadata=message.message_metadata,
        read_by=_read_by(message),
        created_at=message.created_at,
    )


def send_message(db: Session, sender_id: int, content: str, message_type: str = "text",
                 metadata: Optional[Dict[str, Any]] = None, conversation_id: Optional[int] = None,
                 recipient_id: Optional[int] = None) -> models.Message:
    """
    Writes a message into `conversation_id`, or into a new conversation with
    `recipient_id` when no conversation is given. The conversation is touched
    so it sorts first in the inbox. Everything commits together.
    """
    now = utcnow()
    if conversation_id is None:
        conversation = models.Conversation(created_at=now, updated_at=now)
        db.add(conversation)
        db.flush()
        db.add_all([
            models.ConversationParticipant(conversation_id=conversation.id, user_id=sender_id, joined_at=now),
            models.ConversationParticipant(conversation_id=conversation.id, user_id=recipient_id, joined_at=now),
        ])
    else:
        conversation = db.query(models.Conversation).filter(models.Conversation.id == conversation_id).one()
        conversation.updated_at = now

    db_message = models.Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=content,
        message_type=message_type,
        message_metadata=metadata,
        read_by=[sender_id],
        created_at=now,
    )
    db.add(db_message)
    db.commit()
    db.refresh(db_message)
    return db_message


def _mark_read(messages: List[models.Message], user_id: int) -> int:
    marked = 0
    for message in messages:
        readers = _read_by(message)
        if user_id not in readers:
            message.read_by = readers + [user_id]
            marked += 1
    return marked


def get_conversation_messages(db: Session, conversation_id: int, user_id: int,
                              cursor: Optional[Tuple[datetime, int]] = None, limit: int = 20
                              ) -> Tuple[List[models.Message], Optional[str]]:
    """
    Newest messages first, strictly before the `(created_at, id)` position in
    `cursor`. Returned messages are marked as read by `user_id`.

    The next cursor is `"<created_at iso>|<id>"` of the oldest message on this
    page. Messages sharing a timestamp are ordered by id, so none are lost
    between pages.
    """
    query = db.query(models.Message).filter(models.Message.conversation_id == conversation_id)
    if cursor is not None:
        cursor_ts, cursor_id = cursor
        query = query.filter(or_(
            models.Message.created_at < cursor_ts,
            and_(models.Message.created_at == cursor_ts, models.Message.id < cursor_id),
        ))
    rows = query.order_by(models.Message.created_at.desc(), models.Message.id.desc()).limit(limit + 1).all()

    next_cursor = None
    if len(rows) > limit:
        rows = rows[:limit]
        next_cursor = f"{rows[-1].created_at.isoformat()}|{rows[-1].id}"

    if _mark_read(rows, user_id):
        db.commit()
        for message in rows:
            db.refresh(message)
    return rows, next_cursor


def mark_conversation_read(db: Session, conversation_id: int, user_id: int) -> int:
    others = (
        db.query(models.Message)
        .filter(models.Message.conversation_id == conversation_id, models.Message.sender_id != user_id)
        .all()
    )
    marked = _mark_read(others, user_id)
    if marked:
        db.commit()
    return marked


def list_conversations(db: Session, user_id: int) -> List[schemas.ConversationSummary]:
    conversations = (
        db.query(models.Conversation)
        .join(models.ConversationParticipant, models.ConversationParticipant.conversation_id == models.Conversation.id)
        .filter(models.ConversationParticipant.user_id == user_id)
        .order_by(models.Conversation.updated_at.desc(), models.Conversation.id.desc())
        .all()
    )
    if not conversations:
        return []
    conversation_ids = [conversation.id for conversation in conversations]

    participants: Dict[int, List[schemas.ParticipantResponse]] = defaultdict(list)
    participant_rows = (
        db.query(models.ConversationParticipant.conversation_id, models.User)
        .join(models.User, models.User.id == models.ConversationParticipant.user_id)
        .filter(
            models.ConversationParticipant.conversation_id.in_(conversation_ids),
            models.ConversationParticipant.user_id != user_id,
        )
        .all()
    )
    for conversation_id, other in participant_rows:
        participants[conversation_id].append(
            schemas.ParticipantResponse(id=other.id, display_name=other.display_name, avatar_url=other.avatar_url)
        )

    last_messages: Dict[int, models.Message] = {}
    unread_counts: Dict[int, int] = defaultdict(int)
    messages = (
        db.query(models.Message)
        .filter(models.Message.conversation_id.in_(conversation_ids))
        .order_by(models.Message.created_at.desc(), models.Message.id.desc())
        .all()
    )
    for message in messages:
        last_messages.setdefault(message.conversation_id, message)
        if message.sender_id != user_id and user_id not in _read_by(message):
            unread_counts[message.conversation_id] += 1

    summaries = []
    for conversation in conversations:
        last = last_messages.get(conversation.id)
        summaries.append(
            schemas.ConversationSummary(
                conversation_id=conversation.id,
                participants=participants[conversation.id],
                last_message=schemas.LastMessage(
                    content=last.content, sender_id=last.sender_id, created_at=last.created_at
                ) if last else None,
                unread_count=unread_counts[conversation.id],
                updated_at=conversation.updated_at,
            )
        )
    return summaries
