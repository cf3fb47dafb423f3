import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..database import get_db_session
from ..exceptions import NotFoundError
from ..security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/saved-items", tags=["saved-items"])


@router.post("/toggle", response_model=schemas.SavedItemToggleResponse, summary="Save / Unsave Item")
async def toggle_saved_item(
    payload: schemas.SavedItemToggleRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    already_saved = crud.saved_items.get_saved_item(db, user.id, payload.item_type, payload.item_id) is not None
    # Unsaving is always allowed, even when the target has since disappeared
    if not already_saved and not crud.saved_items.target_exists(db, payload.item_type, payload.item_id):
        raise NotFoundError("Item not found")
    saved = crud.saved_items.toggle_saved_item(db, user.id, payload.item_type, payload.item_id)
    logger.info(f"User {user.id} {'saved' if saved else 'unsaved'} {payload.item_type} {payload.item_id}")
    return {"saved": saved}


@router.get("/list", response_model=schemas.SavedItemsListResponse, summary="List Saved Items")
async def list_saved_items(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    items, total_count = crud.saved_items.list_saved_items(db, user.id, page=page, page_size=page_size)
    return {"saved_items": items, "total_count": total_count, "page": page, "page_size": page_size}
