"""
Matches a selfie analysis against the style combo catalogue.

The profile text and every combo description are embedded in one batch and
ranked by cosine similarity. The scan is linear; there is no vector index and
nothing is cached between requests.
"""
import logging
from typing import List, Sequence, Tuple

import numpy as np

from . import ai_core, models, schemas
from .affiliate import add_affiliate_tag

logger = logging.getLogger(__name__)

TOP_COMBOS = 5
ITEMS_PER_COMBO = 2
MAX_RECOMMENDATIONS = 8
MAKEUP_KEYWORDS = ("makeup", "lipstick", "foundation", "mascara")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)
    if vec_a.shape != vec_b.shape:
        raise ValueError(f"Vectors must have the same length ({vec_a.shape[0]} != {vec_b.shape[0]})")
    norm = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if norm == 0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / norm)


def build_user_profile(analysis: schemas.SelfieAnalysis) -> str:
    return (
        f"Face shape: {analysis.face_shape}. Skin tone: {analysis.skin_tone}. "
        f"Current style: {analysis.style}. Body type: {analysis.body_type}. "
        f"Recommendations: {analysis.recommendations}"
    )


def describe_combo(combo: models.StyleCombo) -> str:
    return (
        f"Title: {combo.title}. Description: {combo.description or ''}. Style: {combo.style or ''}. "
        f"Season: {combo.season or ''}. Occasion: {combo.occasion or ''}"
    )


def rank_combos(analysis: schemas.SelfieAnalysis, combos: List[models.StyleCombo],
                limit: int = TOP_COMBOS) -> List[Tuple[models.StyleCombo, float]]:
    """Top `limit` combos with their similarity scores, best first."""
    if not combos:
        return []
    embeddings = ai_core.embed_texts([build_user_profile(analysis)] + [describe_combo(c) for c in combos])
    profile_vector, combo_vectors = embeddings[0], embeddings[1:]

    scored = [(combo, cosine_similarity(profile_vector, vector)) for combo, vector in zip(combos, combo_vectors)]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    logger.debug(f"Combo similarity scores: {[(combo.id, round(score, 4)) for combo, score in scored]}")
    return scored[:limit]


def _is_makeup(name: str) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in MAKEUP_KEYWORDS)


def build_recommendations(analysis: schemas.SelfieAnalysis,
                          combos: List[models.StyleCombo]) -> List[schemas.Recommendation]:
    recommendations: List[schemas.Recommendation] = []
    for combo, _score in rank_combos(analysis, combos):
        shop_url = add_affiliate_tag(combo.shop_url)
        recommendations.append(schemas.Recommendation(
            type="outfit",
            name=combo.title,
            description=(
                f"{combo.description or 'Complete style combo'} - Curated based on your "
                f"{analysis.face_shape} face shape and {analysis.skin_tone} skin tone."
            ),
            price=float(combo.total_price),
            image_url=combo.cover_image_url,
            affiliate_url=shop_url,
        ))
        for item in combo.items[:ITEMS_PER_COMBO]:
            recommendations.append(schemas.Recommendation(
                type="makeup" if _is_makeup(item.name) else "outfit",
                name=item.name,
                description=f'From "{combo.title}" collection - Perfect for your style preferences.',
                price=float(item.price),
                image_url=item.image_url,
                affiliate_url=add_affiliate_tag(item.affiliate_url) if item.affiliate_url else shop_url,
            ))
    return recommendations[:MAX_RECOMMENDATIONS]
