from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from .. import models, schemas
from . import notifications

_UPVOTES = func.coalesce(func.sum(case((models.Vote.vote_type == "upvote", 1), else_=0)), 0)
_DOWNVOTES = func.coalesce(func.sum(case((models.Vote.vote_type == "downvote", 1), else_=0)), 0)


def create_post(db: Session, user_id: int, image_url: str, caption: Optional[str],
                product_tags: Optional[List[Dict[str, Any]]]) -> models.Post:
    db_post = models.Post(user_id=user_id, image_url=image_url, caption=caption, product_tags=product_tags)
    db.add(db_post)
    db.commit()
    db.refresh(db_post)
    return db_post


def get_post(db: Session, post_id: int) -> Optional[models.Post]:
    return db.query(models.Post).filter(models.Post.id == post_id).first()


def _posts_with_votes(db: Session):
    return (
        db.query(models.Post, models.User, _UPVOTES.label("upvotes"), _DOWNVOTES.label("downvotes"))
        .join(models.User, models.Post.user_id == models.User.id)
        .outerjoin(models.Vote, models.Vote.post_id == models.Post.id)
        .group_by(models.Post.id, models.User.id)
    )


def get_user_votes(db: Session, user_id: int, post_ids: List[int]) -> Dict[int, str]:
    if not post_ids:
        return {}
    rows = (
        db.query(models.Vote.post_id, models.Vote.vote_type)
        .filter(models.Vote.user_id == user_id, models.Vote.post_id.in_(post_ids))
        .all()
    )
    return {post_id: vote_type for post_id, vote_type in rows}


def _to_post_response(post: models.Post, author: models.User, upvotes: int, downvotes: int,
                      current_user_vote: Optional[str]) -> schemas.PostResponse:
    return schemas.PostResponse(
        id=post.id,
        image_url=post.image_url,
        caption=post.caption,
        product_tags=post.product_tags,
        created_at=post.created_at,
        author_id=author.id,
        author_display_name=author.display_name,
        author_avatar_url=author.avatar_url,
        upvotes=int(upvotes or 0),
        downvotes=int(downvotes or 0),
        current_user_vote=current_user_vote,
    )


def get_feed(db: Session, limit: int = 10, cursor: Optional[int] = None,
             viewer_id: Optional[int] = None) -> Tuple[List[schemas.PostResponse], Optional[int]]:
    """
    Newest posts first. `cursor` is the last post id the client has seen;
    a next cursor is only handed back when a full page was returned.
    """
    query = _posts_with_votes(db)
    if cursor is not None:
        query = query.filter(models.Post.id < cursor)
    rows = query.order_by(models.Post.id.desc()).limit(limit).all()

    user_votes = get_user_votes(db, viewer_id, [post.id for post, *_ in rows]) if viewer_id else {}
    posts = [
        _to_post_response(post, author, upvotes, downvotes, user_votes.get(post.id))
        for post, author, upvotes, downvotes in rows
    ]
    next_cursor = posts[-1].id if len(posts) == limit else None
    return posts, next_cursor


def get_post_details(db: Session, post_id: int, viewer_id: Optional[int] = None) -> Optional[schemas.PostResponse]:
    row = _posts_with_votes(db).filter(models.Post.id == post_id).first()
    if row is None:
        return None
    post, author, upvotes, downvotes = row
    current_vote = get_user_votes(db, viewer_id, [post.id]).get(post.id) if viewer_id else None
    return _to_post_response(post, author, upvotes, downvotes, current_vote)


def count_votes(db: Session, post_id: int) -> Tuple[int, int]:
    upvotes, downvotes = (
        db.query(_UPVOTES, _DOWNVOTES).filter(models.Vote.post_id == post_id).one()
    )
    return int(upvotes or 0), int(downvotes or 0)


def cast_vote(db: Session, post_id: int, user_id: int, vote_type: str) -> Tuple[int, int]:
    """
    Same vote again removes it, the opposite vote replaces it, otherwise a new
    vote is recorded. Returns the fresh (upvotes, downvotes) totals.
    """
    existing = (
        db.query(models.Vote)
        .filter(models.Vote.post_id == post_id, models.Vote.user_id == user_id)
        .with_for_update()
        .first()
    )
    if existing is None:
        db.add(models.Vote(post_id=post_id, user_id=user_id, vote_type=vote_type))
    elif existing.vote_type == vote_type:
        db.delete(existing)
    else:
        existing.vote_type = vote_type
    db.commit()
    return count_votes(db, post_id)


# --- Comments ---

def get_comment(db: Session, comment_id: int) -> Optional[models.Comment]:
    return db.query(models.Comment).filter(models.Comment.id == comment_id).first()


def _to_comment_response(comment: models.Comment, author: models.User) -> schemas.CommentResponse:
    return schemas.CommentResponse(
        id=comment.id,
        post_id=comment.post_id,
        content=comment.content,
        created_at=comment.created_at,
        parent_id=comment.parent_id,
        reply_count=comment.reply_count or 0,
        author_id=author.id,
        author_display_name=author.display_name,
        author_avatar_url=author.avatar_url,
    )


def get_comment_tree(db: Session, post_id: int) -> List[schemas.CommentResponse]:
    rows = (
        db.query(models.Comment, models.User)
        .join(models.User, models.Comment.user_id == models.User.id)
        .filter(models.Comment.post_id == post_id)
        .order_by(models.Comment.created_at.asc(), models.Comment.id.asc())
        .all()
    )
    by_id: Dict[int, schemas.CommentResponse] = {}
    roots: List[schemas.CommentResponse] = []
    for comment, author in rows:
        by_id[comment.id] = _to_comment_response(comment, author)
    for comment, _ in rows:
        node = by_id[comment.id]
        parent = by_id.get(comment.parent_id) if comment.parent_id else None
        if parent is not None:
            parent.replies.append(node)
        else:
            roots.append(node)
    return roots


def create_comment(db: Session, post: models.Post, author: models.User, content: str,
                   parent: Optional[models.Comment] = None) -> schemas.CommentResponse:
    """
    Inserts the comment, bumps the parent's reply count and notifies whoever is
    being answered, all in one transaction.
    """
    db_comment = models.Comment(
        post_id=post.id,
        user_id=author.id,
        parent_id=parent.id if parent else None,
        content=content,
        reply_count=0,
    )
    db.add(db_comment)

    if parent is not None:
        db.query(models.Comment).filter(models.Comment.id == parent.id).update(
            {models.Comment.reply_count: models.Comment.reply_count + 1}, synchronize_session=False
        )
        if parent.user_id != author.id:
            notifications.add_notification(
                db,
                user_id=parent.user_id,
                type="comment_reply",
                title="New Reply",
                message=f"{author.display_name} replied to your comment.",
                data={"postId": post.id, "commentId": parent.id, "replierId": author.id},
            )
    elif post.user_id != author.id:
        notifications.add_notification(
            db,
            user_id=post.user_id,
            type="post_comment",
            title="New Comment",
            message=f"{author.display_name} commented on your post.",
            data={"postId": post.id, "commenterId": author.id},
        )

    db.commit()
    db.refresh(db_comment)
    return _to_comment_response(db_comment, author)
