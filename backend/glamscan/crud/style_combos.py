from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..affiliate import add_affiliate_tag
from ..database import LIKE_ESCAPE, contains_pattern
from . import saved_items


def _build_items(items: List[schemas.StyleComboItemInput]) -> List[models.StyleComboItem]:
    return [
        models.StyleComboItem(
            name=item.name,
            price=item.price,
            image_url=item.image_url,
            affiliate_url=add_affiliate_tag(item.affiliate_url) if item.affiliate_url else None,
            item_order=item.item_order if item.item_order is not None else index + 1,
        )
        for index, item in enumerate(items)
    ]


def _apply_fields(db_combo: models.StyleCombo, payload: schemas.StyleComboInput) -> None:
    db_combo.title = payload.title
    db_combo.description = payload.description
    db_combo.cover_image_url = payload.cover_image_url
    db_combo.shop_url = add_affiliate_tag(payload.shop_url)
    db_combo.total_price = payload.total_price
    db_combo.season = payload.season
    db_combo.occasion = payload.occasion
    db_combo.style = payload.style
    db_combo.is_sponsored = payload.is_sponsored


def create_style_combo(db: Session, payload: schemas.StyleComboInput) -> models.StyleCombo:
    """Inserts the combo and its items in one transaction, links affiliate-tagged."""
    db_combo = models.StyleCombo()
    _apply_fields(db_combo, payload)
    db_combo.items = _build_items(payload.items)
    db.add(db_combo)
    db.commit()
    db.refresh(db_combo)
    return db_combo


def get_style_combo(db: Session, combo_id: int) -> Optional[models.StyleCombo]:
    return (
        db.query(models.StyleCombo)
        .options(selectinload(models.StyleCombo.items))
        .filter(models.StyleCombo.id == combo_id)
        .first()
    )


def update_style_combo(db: Session, db_combo: models.StyleCombo, payload: schemas.StyleComboInput) -> models.StyleCombo:
    """Overwrites the combo's fields and replaces its items wholesale."""
    _apply_fields(db_combo, payload)
    db_combo.items = _build_items(payload.items)
    db.commit()
    db.refresh(db_combo)
    return db_combo


def delete_style_combo(db: Session, db_combo: models.StyleCombo) -> None:
    saved_items.delete_references(db, item_type="style_combo", item_id=db_combo.id)
    db.delete(db_combo)
    db.commit()


def list_style_combos(db: Session, page: int = 1, page_size: int = 20, season: Optional[str] = None,
                      occasion: Optional[str] = None, style: Optional[str] = None,
                      search: Optional[str] = None) -> Tuple[List[models.StyleCombo], int]:
    query = db.query(models.StyleCombo)
    if season:
        query = query.filter(models.StyleCombo.season == season)
    if occasion:
        query = query.filter(models.StyleCombo.occasion == occasion)
    if style:
        query = query.filter(models.StyleCombo.style == style)
    if search:
        pattern = contains_pattern(search)
        query = query.filter(or_(
            models.StyleCombo.title.ilike(pattern, escape=LIKE_ESCAPE),
            models.StyleCombo.description.ilike(pattern, escape=LIKE_ESCAPE),
        ))

    total_count = query.count()
    combos = (
        query.options(selectinload(models.StyleCombo.items))
        .order_by(models.StyleCombo.created_at.desc(), models.StyleCombo.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return combos, total_count


def get_all_with_items(db: Session) -> List[models.StyleCombo]:
    return (
        db.query(models.StyleCombo)
        .options(selectinload(models.StyleCombo.items))
        .order_by(models.StyleCombo.id.asc())
        .all()
    )


# --- Response shaping ---

def to_combo_response(db_combo: models.StyleCombo, response_cls=schemas.StyleComboResponse):
    """Detail shape; links are re-tagged in case the tag changed after creation."""
    combo = response_cls.model_validate(db_combo)
    combo.shop_url = add_affiliate_tag(combo.shop_url)
    for item in combo.items:
        if item.affiliate_url:
            item.affiliate_url = add_affiliate_tag(item.affiliate_url)
    return combo


def to_list_entry(db_combo: models.StyleCombo) -> schemas.StyleComboListEntry:
    return to_combo_response(db_combo, schemas.StyleComboListEntry)
