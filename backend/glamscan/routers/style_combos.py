import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from .. import ai_core, crud, models, schemas
from ..affiliate import is_affiliate_configured
from ..database import get_db_session
from ..exceptions import AuthorizationError, NotFoundError
from ..rate_limiter import general_limiter, post_limiter
from ..security import get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/style-combos", tags=["style-combos"])


@router.get(
    "/list",
    response_model=schemas.StyleComboListResponse,
    dependencies=[Depends(general_limiter)],
    summary="Browse Style Combos"
)
async def list_style_combos(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    season: Optional[schemas.Season] = Query(None),
    occasion: Optional[schemas.Occasion] = Query(None),
    style: Optional[schemas.Style] = Query(None),
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    db: Session = Depends(get_db_session)
):
    combos, total_count = crud.style_combos.list_style_combos(
        db, page=page, page_size=page_size, season=season, occasion=occasion, style=style, search=search
    )
    return {
        "style_combos": [crud.style_combos.to_list_entry(combo) for combo in combos],
        "total_count": total_count,
        "page": page,
        "page_size": page_size,
    }


@router.post(
    "/detail",
    response_model=schemas.StyleComboDetailResponse,
    dependencies=[Depends(general_limiter)],
    summary="Style Combo Detail"
)
async def read_style_combo(payload: schemas.StyleComboIdRequest, db: Session = Depends(get_db_session)):
    db_combo = crud.style_combos.get_style_combo(db, payload.id)
    if db_combo is None:
        raise NotFoundError("Style combo not found")
    return {"style_combo": crud.style_combos.to_combo_response(db_combo)}


@router.post(
    "/create",
    response_model=schemas.StyleComboWriteResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(post_limiter)],
    summary="Create Style Combo",
    description="Any signed-in user may publish a combo; only admins may omit affiliate links or mark it sponsored."
)
async def create_style_combo(
    payload: schemas.StyleComboInput,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    logger.info(f"POST /style-combos/create - User: {user.id}, Title: '{payload.title}', Items: {len(payload.items)}")
    if user.role != "admin":
        if any(not item.affiliate_url for item in payload.items):
            raise AuthorizationError("Non-admin users must provide affiliate URLs for all items.")
        if payload.is_sponsored:
            raise AuthorizationError("Only admins can create sponsored style combos.")

    db_combo = crud.style_combos.create_style_combo(db, payload)
    logger.info(f"Successfully created style combo ID: {db_combo.id}")
    return {"success": True, "style_combo_id": db_combo.id}


@router.post(
    "/update",
    response_model=schemas.StyleComboWriteResponse,
    summary="Update Style Combo (admin)",
    dependencies=[Depends(post_limiter)],
)
async def update_style_combo(
    payload: schemas.StyleComboUpdateRequest,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    db_combo = crud.style_combos.get_style_combo(db, payload.id)
    if db_combo is None:
        logger.warning(f"Attempted to update non-existent style combo ID: {payload.id}")
        raise NotFoundError(f"Style combo with ID {payload.id} not found.")
    crud.style_combos.update_style_combo(db, db_combo, payload)
    logger.info(f"Admin {admin.id} updated style combo ID: {payload.id}")
    return {"success": True, "style_combo_id": payload.id}


@router.post(
    "/delete",
    response_model=schemas.DeleteResponse,
    summary="Delete Style Combo (admin)",
    dependencies=[Depends(post_limiter)],
)
async def delete_style_combo(
    payload: schemas.StyleComboIdRequest,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db_session)
):
    db_combo = crud.style_combos.get_style_combo(db, payload.id)
    if db_combo is None:
        logger.warning(f"Attempted to delete non-existent style combo ID: {payload.id}")
        raise NotFoundError(f"Style combo with ID {payload.id} not found.")
    crud.style_combos.delete_style_combo(db, db_combo)
    logger.info(f"Admin {admin.id} deleted style combo ID: {payload.id}")
    return {"success": True, "message": f"Style combo with ID {payload.id} deleted successfully."}


@router.post(
    "/generate-links",
    response_model=List[schemas.GeneratedLink],
    dependencies=[Depends(post_limiter)],
    summary="Generate Shoppable Links",
    description="Breaks a look description into 3-5 Amazon search links using the chat model."
)
async def generate_links(payload: schemas.GenerateLinksRequest, response: Response):
    logger.info(f"POST /style-combos/generate-links - Description: '{payload.description[:50]}...'")
    items = ai_core.generate_combo_links(
        payload.description, title=payload.title, season=payload.season, style=payload.style
    )
    if not is_affiliate_configured():
        response.headers["X-Affiliate-Warning"] = "Affiliate tagging is not configured; links are untagged."
    return items
