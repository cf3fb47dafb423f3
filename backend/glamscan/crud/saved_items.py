from typing import List, Optional, Tuple, Union

from sqlalchemy.orm import Session, selectinload

from .. import models, schemas


def get_saved_item(db: Session, user_id: int, item_type: str, item_id: int) -> Optional[models.SavedItem]:
    return (
        db.query(models.SavedItem)
        .filter(
            models.SavedItem.user_id == user_id,
            models.SavedItem.item_type == item_type,
            models.SavedItem.item_id == item_id,
        )
        .first()
    )


def target_exists(db: Session, item_type: str, item_id: int) -> bool:
    model = models.Post if item_type == "post" else models.StyleCombo
    return db.query(model.id).filter(model.id == item_id).first() is not None


def toggle_saved_item(db: Session, user_id: int, item_type: str, item_id: int) -> bool:
    """Removes the bookmark if present, adds it otherwise. Returns the new saved state."""
    existing = get_saved_item(db, user_id, item_type, item_id)
    if existing is not None:
        db.delete(existing)
        db.commit()
        return False
    db.add(models.SavedItem(user_id=user_id, item_type=item_type, item_id=item_id))
    db.commit()
    return True


def delete_references(db: Session, item_type: str, item_id: int) -> int:
    """Drops every bookmark pointing at an item. Does not commit."""
    return (
        db.query(models.SavedItem)
        .filter(models.SavedItem.item_type == item_type, models.SavedItem.item_id == item_id)
        .delete(synchronize_session=False)
    )


def list_saved_items(db: Session, user_id: int, page: int = 1, page_size: int = 20
                     ) -> Tuple[List[Union[schemas.SavedPost, schemas.SavedStyleCombo]], int]:
    query = db.query(models.SavedItem).filter(models.SavedItem.user_id == user_id)
    total_count = query.count()
    saved = (
        query.order_by(models.SavedItem.created_at.desc(), models.SavedItem.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    post_ids = [row.item_id for row in saved if row.item_type == "post"]
    combo_ids = [row.item_id for row in saved if row.item_type == "style_combo"]
    posts = {
        post.id: post
        for post in db.query(models.Post).filter(models.Post.id.in_(post_ids)).all()
    } if post_ids else {}
    combos = {
        combo.id: combo
        for combo in db.query(models.StyleCombo)
        .options(selectinload(models.StyleCombo.items))
        .filter(models.StyleCombo.id.in_(combo_ids))
        .all()
    } if combo_ids else {}

    # Imported here: style_combos imports this module for delete_references
    from .style_combos import to_combo_response

    items: List[Union[schemas.SavedPost, schemas.SavedStyleCombo]] = []
    for row in saved:
        if row.item_type == "post" and row.item_id in posts:
            items.append(schemas.SavedPost.model_validate(posts[row.item_id]))
        elif row.item_type == "style_combo" and row.item_id in combos:
            items.append(to_combo_response(combos[row.item_id], schemas.SavedStyleCombo))
    return items, total_count
