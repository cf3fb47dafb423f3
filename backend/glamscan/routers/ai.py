import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import ai_core, crud, models, recommender, schemas
from ..database import get_db_session
from ..exceptions import ValidationError
from ..security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ai"])


@router.post(
    "/ai-outfit/generate",
    response_model=schemas.OutfitResponse,
    summary="Generate AI Outfit",
    description="Builds a 4-6 piece outfit for the signed-in user's preferences."
)
async def generate_outfit(
    payload: schemas.OutfitRequest,
    user: models.User = Depends(get_current_user)
):
    logger.info(f"POST /ai-outfit/generate - User: {user.id}, Occasion: '{payload.occasion}', Style: '{payload.style}'")
    outfit = ai_core.generate_outfit(
        gender=user.gender,
        occasion=payload.occasion,
        style=payload.style,
        budget=payload.budget,
        other_preferences=payload.other_preferences,
    )
    if not outfit:
        logger.error("AI core returned an empty outfit.")
        raise ValidationError("Could not generate an outfit for these preferences. Please try adjusting them.")
    return {"outfit": outfit}


@router.post(
    "/recommendations/generate",
    response_model=schemas.RecommendationsResponse,
    summary="Selfie Recommendations",
    description="Analyses a selfie and matches it to the closest style combos by embedding similarity."
)
async def generate_recommendations(
    payload: schemas.SelfieRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db_session)
):
    logger.info(f"POST /recommendations/generate - User: {user.id}")
    combos = crud.style_combos.get_all_with_items(db)
    if not combos:
        raise ValidationError("No style combinations found in database. Please add some style combos first.")

    analysis = ai_core.analyze_selfie(payload.selfie_base64)

    recommendations = recommender.build_recommendations(analysis, combos)
    logger.info(f"Returning {len(recommendations)} recommendations for user {user.id}")
    return {"recommendations": recommendations}
