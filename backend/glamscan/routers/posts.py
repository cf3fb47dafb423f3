import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import TypeAdapter, ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from .. import crud, models, schemas, storage
from ..config import settings
from ..database import get_db_session
from ..exceptions import NotFoundError, ValidationError
from ..rate_limiter import general_limiter, post_limiter
from ..security import get_current_user, get_optional_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["posts"])

_product_tags_adapter = TypeAdapter(List[schemas.ProductTag])


def _parse_product_tags(raw: Optional[str]) -> Optional[list]:
    if raw is None or not raw.strip():
        return None
    try:
        tags = _product_tags_adapter.validate_python(json.loads(raw))
    except (json.JSONDecodeError, PydanticValidationError) as e:
        raise ValidationError("Invalid product tags JSON format") from e
    return [tag.model_dump(by_alias=True, exclude_none=True) for tag in tags]


@router.post(
    "/posts/create",
    response_model=schemas.PostResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(post_limiter)],
    summary="Create Post",
    description="Multipart upload of a look photo with optional caption and product tags."
)
async def create_post(
    image: UploadFile = File(...),
    caption: Optional[str] = Form(None),
    product_tags: Optional[str] = Form(None, alias="productTags"),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    logger.info(f"POST /posts/create - User: {user.id}, File: '{image.filename}'")
    clean_caption = None
    if caption is not None and caption.strip():
        try:
            clean_caption = schemas.sanitize_text(caption, 2200)
        except ValueError as e:
            raise ValidationError(str(e)) from e
    tags = _parse_product_tags(product_tags)

    # One byte past the limit is enough to reject an oversized upload
    content = await image.read(settings.MAX_IMAGE_SIZE + 1)
    storage.validate_image_upload(image.filename or "", image.content_type or "", len(content))
    image_url = storage.save_image(image.filename or "", content)

    db_post = crud.posts.create_post(db, user_id=user.id, image_url=image_url, caption=clean_caption, product_tags=tags)
    logger.info(f"Successfully created post ID: {db_post.id}")
    return crud.posts.get_post_details(db, db_post.id, viewer_id=user.id)


@router.get("/posts/feed", response_model=schemas.FeedResponse, summary="Hot or Not Feed")
async def read_feed(
    limit: int = Query(10, ge=1, le=50, description="Maximum number of posts to return"),
    cursor: Optional[int] = Query(None, ge=1, description="Return posts older than this post id"),
    user: Optional[models.User] = Depends(get_optional_user),
    db: Session = Depends(get_db_session)
):
    posts, next_cursor = crud.posts.get_feed(db, limit=limit, cursor=cursor, viewer_id=user.id if user else None)
    return {"posts": posts, "next_cursor": next_cursor}


@router.post("/post/detail", response_model=schemas.PostResponse, summary="Post Detail")
async def read_post_detail(
    payload: schemas.PostDetailRequest,
    user: Optional[models.User] = Depends(get_optional_user),
    db: Session = Depends(get_db_session)
):
    post = crud.posts.get_post_details(db, payload.post_id, viewer_id=user.id if user else None)
    if post is None:
        logger.warning(f"Post with ID {payload.post_id} not found.")
        raise NotFoundError("Post not found")
    return post


@router.post("/posts/vote", response_model=schemas.VoteResponse, summary="Vote On Post")
async def vote_on_post(
    payload: schemas.VoteRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    if crud.posts.get_post(db, payload.post_id) is None:
        raise NotFoundError("Post not found")
    upvotes, downvotes = crud.posts.cast_vote(db, payload.post_id, user.id, payload.vote_type)
    logger.info(f"User {user.id} {payload.vote_type} on post {payload.post_id}: +{upvotes}/-{downvotes}")
    return {"post_id": payload.post_id, "upvotes": upvotes, "downvotes": downvotes}


@router.get("/posts/comments", response_model=schemas.CommentsResponse, summary="Comment Thread")
async def read_comments(
    post_id: int = Query(..., alias="postId", ge=1),
    db: Session = Depends(get_db_session)
):
    return {"comments": crud.posts.get_comment_tree(db, post_id)}


@router.post(
    "/posts/comments",
    response_model=schemas.CommentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(general_limiter)],
    summary="Add Comment"
)
async def add_comment(
    payload: schemas.CommentCreateRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    post = crud.posts.get_post(db, payload.post_id)
    if post is None:
        raise NotFoundError("Post not found")

    parent = None
    if payload.parent_id is not None:
        parent = crud.posts.get_comment(db, payload.parent_id)
        if parent is None:
            raise NotFoundError("Parent comment not found")
        if parent.post_id != post.id:
            raise ValidationError("Parent comment does not belong to this post")

    comment = crud.posts.create_comment(db, post=post, author=user, content=payload.content, parent=parent)
    logger.info(f"User {user.id} commented on post {post.id} (comment {comment.id})")
    return comment
