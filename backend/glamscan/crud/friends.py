from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import LIKE_ESCAPE, contains_pattern
from . import notifications


def get_relationship(db: Session, user_a: int, user_b: int) -> Optional[models.Friend]:
    """The friendship row between two users, whichever of them sent it."""
    return (
        db.query(models.Friend)
        .filter(
            or_(
                and_(models.Friend.requester_id == user_a, models.Friend.addressee_id == user_b),
                and_(models.Friend.requester_id == user_b, models.Friend.addressee_id == user_a),
            )
        )
        .first()
    )


def is_blocked_between(db: Session, user_a: int, user_b: int) -> bool:
    relationship = get_relationship(db, user_a, user_b)
    return relationship is not None and relationship.status == "blocked"


def get_pending_request(db: Session, requester_id: int, addressee_id: int) -> Optional[models.Friend]:
    return (
        db.query(models.Friend)
        .filter(
            models.Friend.requester_id == requester_id,
            models.Friend.addressee_id == addressee_id,
            models.Friend.status == "pending",
        )
        .first()
    )


def send_request(db: Session, requester: models.User, addressee_id: int) -> models.Friend:
    db_request = models.Friend(requester_id=requester.id, addressee_id=addressee_id, status="pending")
    db.add(db_request)
    notifications.add_notification(
        db,
        user_id=addressee_id,
        type="friend_request",
        title="New Friend Request",
        message=f"{requester.display_name} sent you a friend request.",
        data={"requesterId": requester.id, "requesterName": requester.display_name},
    )
    db.commit()
    db.refresh(db_request)
    return db_request


def accept_request(db: Session, db_request: models.Friend, accepter: models.User) -> models.Friend:
    db_request.status = "accepted"
    notifications.add_notification(
        db,
        user_id=db_request.requester_id,
        type="friend_accepted",
        title="Friend Request Accepted",
        message=f"{accepter.display_name} accepted your friend request.",
        data={"accepterId": accepter.id, "accepterName": accepter.display_name},
    )
    db.commit()
    db.refresh(db_request)
    return db_request


def decline_request(db: Session, db_request: models.Friend) -> None:
    db.delete(db_request)
    db.commit()


def block_user(db: Session, blocker_id: int, blocked_id: int, db_request: Optional[models.Friend] = None) -> models.Friend:
    """
    Drops the pending request (if any) and records a block owned by `blocker_id`.
    """
    if db_request is not None:
        db.delete(db_request)
        db.flush()

    db_block = (
        db.query(models.Friend)
        .filter(models.Friend.requester_id == blocker_id, models.Friend.addressee_id == blocked_id)
        .first()
    )
    if db_block is None:
        db_block = models.Friend(requester_id=blocker_id, addressee_id=blocked_id, status="blocked")
        db.add(db_block)
    else:
        db_block.status = "blocked"
    db.commit()
    db.refresh(db_block)
    return db_block


def list_friends(db: Session, user_id: int, filter: str = "all") -> List[schemas.FriendListItem]:
    query = db.query(models.Friend, models.User)
    if filter == "pending_sent":
        query = query.join(models.User, models.User.id == models.Friend.addressee_id).filter(
            models.Friend.requester_id == user_id, models.Friend.status == "pending"
        )
    elif filter == "pending_received":
        query = query.join(models.User, models.User.id == models.Friend.requester_id).filter(
            models.Friend.addressee_id == user_id, models.Friend.status == "pending"
        )
    elif filter == "blocked":
        query = query.join(models.User, models.User.id == models.Friend.addressee_id).filter(
            models.Friend.requester_id == user_id, models.Friend.status == "blocked"
        )
    else:
        other_side = or_(
            and_(models.Friend.requester_id == user_id, models.User.id == models.Friend.addressee_id),
            and_(models.Friend.addressee_id == user_id, models.User.id == models.Friend.requester_id),
        )
        query = query.join(models.User, other_side).filter(models.Friend.status == "accepted")

    rows = query.order_by(models.Friend.updated_at.desc(), models.Friend.id.desc()).all()
    return [
        schemas.FriendListItem(
            id=other.id,
            display_name=other.display_name,
            avatar_url=other.avatar_url,
            requester_id=relationship.requester_id if filter == "pending_received" else None,
        )
        for relationship, other in rows
    ]


def search_users(db: Session, user_id: int, query_text: str, limit: int = 20) -> List[schemas.FriendSearchResult]:
    """
    Users whose display name or email contains `query_text`, excluding the
    caller and anyone who has blocked them.
    """
    pattern = contains_pattern(query_text)
    candidates = (
        db.query(models.User)
        .filter(
            models.User.id != user_id,
            or_(
                models.User.display_name.ilike(pattern, escape=LIKE_ESCAPE),
                models.User.email.ilike(pattern, escape=LIKE_ESCAPE),
            ),
        )
        .order_by(models.User.display_name.asc())
        .limit(limit * 2)
        .all()
    )
    if not candidates:
        return []

    candidate_ids = [candidate.id for candidate in candidates]
    relationships = (
        db.query(models.Friend)
        .filter(
            or_(
                and_(models.Friend.requester_id == user_id, models.Friend.addressee_id.in_(candidate_ids)),
                and_(models.Friend.addressee_id == user_id, models.Friend.requester_id.in_(candidate_ids)),
            )
        )
        .all()
    )
    by_other_id = {}
    for relationship in relationships:
        other_id = relationship.addressee_id if relationship.requester_id == user_id else relationship.requester_id
        by_other_id[other_id] = relationship

    results: List[schemas.FriendSearchResult] = []
    for candidate in candidates:
        relationship = by_other_id.get(candidate.id)
        if relationship is not None and relationship.status == "blocked" and relationship.requester_id != user_id:
            continue
        results.append(
            schemas.FriendSearchResult(
                id=candidate.id,
                display_name=candidate.display_name,
                avatar_url=candidate.avatar_url,
                friend_status=relationship.status if relationship else None,
                is_request_sent_by_me=bool(relationship and relationship.requester_id == user_id),
            )
        )
        if len(results) == limit:
            break
    return results
