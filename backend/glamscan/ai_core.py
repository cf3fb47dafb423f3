import base64
import hashlib
import json
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

import openai
from pydantic import ValidationError as PydanticValidationError

from . import schemas
from .affiliate import add_affiliate_tag
from .config import settings
from .exceptions import (
    AIServiceNotConfiguredError,
    ExternalServiceError,
    RateLimitError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# --- Configuration ---
# Set GLAMSCAN_MOCK_AI=true to run without an OpenAI key (local dev, tests).
USE_MOCK_AI = settings.USE_MOCK_AI

CHAT_MODEL = settings.OPENAI_CHAT_MODEL
VISION_MODEL = settings.OPENAI_VISION_MODEL
EMBEDDING_MODEL = settings.OPENAI_EMBEDDING_MODEL

MOCK_EMBEDDING_DIMENSIONS = 64
PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/300x300"

openai_client = None
if settings.OPENAI_API_KEY:
    try:
        openai_client = openai.OpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL or None,
        )
        logger.info(f"OpenAI client initialized: chat='{CHAT_MODEL}', vision='{VISION_MODEL}', embeddings='{EMBEDDING_MODEL}'")
    except openai.OpenAIError as e:
        logger.error(f"Failed to initialize OpenAI client: {e}", exc_info=True)
        openai_client = None
elif not USE_MOCK_AI:
    logger.warning("OPENAI_API_KEY is not set; AI endpoints will answer 503 until it is configured.")

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def amazon_search_url(terms: str) -> str:
    return f"https://www.amazon.com/s?k={quote_plus(terms)}"


# --- Mock AI Implementation ---

def _mock_outfit(gender: Optional[str], occasion: Optional[str], style: Optional[str],
                 budget: Optional[float]) -> List[Dict[str, Any]]:
    """Deterministic four-piece outfit shaped like a model answer."""
    look = " ".join(part for part in (style, occasion) if part) or "everyday"
    audience = {"male": "men's", "female": "women's"}.get(gender or "", "unisex")
    share = (budget / 4) if budget else None
    pieces = [
        ("Top", "shirt", 39.99),
        ("Bottom", "trousers", 54.99),
        ("Shoes", "shoes", 79.99),
        ("Accessory", "watch", 29.99),
    ]
    items = []
    for category, noun, default_price in pieces:
        name = f"{look.title()} {noun.title()}"
        items.append({
            "name": name,
            "description": f"A {audience} {noun} that suits a {look} look.",
            "category": category,
            "price": round(share, 2) if share else default_price,
            "imageUrl": PLACEHOLDER_IMAGE_URL,
            "affiliateUrl": amazon_search_url(f"{audience} {look} {noun}"),
        })
    return items


def _mock_combo_links(description: str, title: Optional[str]) -> List[Dict[str, Any]]:
    keywords = " ".join(re.findall(r"[A-Za-z]+", title or description)[:4]) or "outfit"
    return [
        {
            "name": f"{keywords.title()} {noun}",
            "price": price,
            "imageUrl": PLACEHOLDER_IMAGE_URL,
            "affiliateUrl": amazon_search_url(f"{keywords} {noun}"),
        }
        for noun, price in (("Top", 34.99), ("Bottoms", 49.99), ("Shoes", 69.99))
    ]


def _mock_selfie_analysis() -> Dict[str, str]:
    return {
        "faceShape": "oval",
        "skinTone": "warm with golden undertones",
        "style": "classic casual",
        "bodyType": "athletic",
        "recommendations": "Earth tones, tailored fits and minimalist classic pieces suit this profile.",
    }


def _mock_embedding(text: str) -> List[float]:
    """Hashed bag-of-words vector; similar texts share buckets."""
    vector = [0.0] * MOCK_EMBEDDING_DIMENSIONS
    for word in re.findall(r"[a-z0-9]+", text.lower()):
        bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % MOCK_EMBEDDING_DIMENSIONS
        vector[bucket] += 1.0
    return vector


# --- OpenAI Integration ---

def _require_client() -> "openai.OpenAI":
    if openai_client is None:
        logger.error("OpenAI client is not initialized. Is OPENAI_API_KEY set?")
        raise AIServiceNotConfiguredError()
    return openai_client


def _translate_provider_error(e: openai.OpenAIError, action: str) -> Exception:
    """Maps an SDK error onto the API error the caller should see."""
    detail = f"{getattr(e, 'code', '') or ''} {e}".lower()
    if isinstance(e, openai.RateLimitError):
        logger.warning(f"OpenAI rate limit hit during {action}: {e}")
        return RateLimitError("Too many requests. Please try again in a few minutes.")
    if isinstance(e, openai.BadRequestError) and "content_policy_violation" in detail:
        logger.warning(f"OpenAI rejected content during {action}: {e}")
        return ValidationError("Image content violates our safety guidelines. Please upload a different photo.")
    if isinstance(e, openai.BadRequestError) and "invalid_image" in detail:
        logger.warning(f"OpenAI rejected the image during {action}: {e}")
        return ValidationError("Invalid image format. Please upload a clear selfie photo.")
    if isinstance(e, openai.APIConnectionError):
        logger.error(f"OpenAI API Connection Error during {action}: {e}", exc_info=True)
    else:
        logger.error(f"OpenAI API Error during {action}: {e}", exc_info=True)
    return ExternalServiceError()


def _chat_json(model: str, messages: List[Dict[str, Any]], action: str, temperature: float = 0.7,
               json_mode: bool = True) -> Dict[str, Any]:
    client = _require_client()
    logger.debug(f"OpenAI {action}: model='{model}'")
    request_args: Dict[str, Any] = {"model": model, "messages": messages, "temperature": temperature}
    if json_mode:
        request_args["response_format"] = {"type": "json_object"}
    try:
        completion = client.chat.completions.create(**request_args)
    except openai.OpenAIError as e:
        raise _translate_provider_error(e, action) from e

    content = (completion.choices[0].message.content or "").strip() if completion.choices else ""
    if not content:
        logger.error(f"OpenAI returned no content for {action}")
        raise ExternalServiceError()

    match = _JSON_OBJECT.search(content)
    if match is None:
        logger.error(f"OpenAI {action} answer had no JSON object: {content[:200]}")
        raise ExternalServiceError()
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.error(f"OpenAI {action} answer was not valid JSON: {e}")
        raise ExternalServiceError() from e


def generate_outfit(gender: Optional[str] = None, occasion: Optional[str] = None, style: Optional[str] = None,
                    budget: Optional[float] = None, other_preferences: Optional[str] = None
                    ) -> List[schemas.OutfitItem]:
    """
    Asks the chat model for a 4-6 piece outfit. Every item is validated and
    its shopping link affiliate-tagged.
    """
    if USE_MOCK_AI:
        logger.info("--- Using MOCKED AI outfit ---")
        raw = {"outfit": _mock_outfit(gender, occasion, style, budget)}
    else:
        prompt = (
            "You are a world-class fashion stylist for an AI-powered fashion app called GlamScan. "
            "Create a complete outfit recommendation based on the user's preferences.\n\n"
            "User Preferences:\n"
            f"- Occasion: {occasion or 'any'}\n"
            f"- Style: {style or 'any'}\n"
            f"- Budget: {f'Around ${budget}' if budget else 'not specified'}\n"
            f"- Gender: {gender or 'unisex'}\n"
            f"- Other notes: {other_preferences or 'none'}\n\n"
            "Create a cohesive outfit with 4-6 items (tops, bottoms, shoes, accessories). For each item give "
            "a descriptive name, a description of why it fits, a category (Top, Bottom, Shoes, Accessory), "
            f"a realistic USD price, an image URL (use {PLACEHOLDER_IMAGE_URL}) and an Amazon search URL "
            "of the form https://www.amazon.com/s?k=search+terms.\n\n"
            'Respond with a JSON object: {"outfit": [{"name": "", "description": "", "category": "", '
            '"price": 49.99, "imageUrl": "", "affiliateUrl": ""}]}'
        )
        raw = _chat_json(CHAT_MODEL, [{"role": "user", "content": prompt}], action="outfit generation")

    try:
        outfit = schemas.OutfitResponse.model_validate(raw).outfit
    except PydanticValidationError as e:
        logger.error(f"AI outfit answer failed validation: {e}")
        raise ExternalServiceError("Failed to generate outfit: AI returned invalid data format") from e

    for item in outfit:
        item.affiliate_url = add_affiliate_tag(item.affiliate_url)
    logger.info(f"Generated outfit with {len(outfit)} items")
    return outfit


def generate_combo_links(description: str, title: Optional[str] = None, season: Optional[str] = None,
                         style: Optional[str] = None) -> List[schemas.GeneratedLink]:
    """Turns a free-text look description into 3-5 shoppable Amazon search links."""
    if USE_MOCK_AI:
        logger.info("--- Using MOCKED AI combo links ---")
        raw = {"items": _mock_combo_links(description, title)}
    else:
        context = "\n".join(
            line for line in (
                f"Title: {title}" if title else "",
                f"Season: {season}" if season else "",
                f"Style: {style}" if style else "",
            ) if line
        )
        prompt = (
            "You are a fashion merchandiser. Break the following look into 3-5 individual shoppable items.\n\n"
            f"Description: {description}\n{context}\n\n"
            "For each item give a short product name, a realistic USD price, an image URL "
            f"(use {PLACEHOLDER_IMAGE_URL}) and an Amazon search URL of the form "
            "https://www.amazon.com/s?k=search+terms.\n\n"
            'Respond with a JSON object: {"items": [{"name": "", "price": 29.99, "imageUrl": "", "affiliateUrl": ""}]}'
        )
        raw = _chat_json(CHAT_MODEL, [{"role": "user", "content": prompt}], action="combo link generation")

    try:
        items = schemas.GeneratedLinksPayload.model_validate(raw).items
    except PydanticValidationError as e:
        logger.error(f"AI combo link answer failed validation: {e}")
        raise ExternalServiceError("Failed to generate links: AI returned invalid data format") from e

    for item in items:
        item.affiliate_url = add_affiliate_tag(item.affiliate_url)
    return items


def _as_data_url(image: str) -> str:
    if image.startswith("data:image/"):
        return image
    # Bare base64: sniff PNG, default to JPEG
    try:
        head = base64.b64decode(image[:16] + "=" * (-len(image[:16]) % 4))
    except ValueError:
        head = b""
    mime = "image/png" if head.startswith(b"\x89PNG") else "image/jpeg"
    return f"data:{mime};base64,{image}"


def analyze_selfie(image_base64: str) -> schemas.SelfieAnalysis:
    """Vision pass over a selfie: face shape, skin tone, style, body type, advice."""
    if USE_MOCK_AI:
        logger.info("--- Using MOCKED AI selfie analysis ---")
        raw = _mock_selfie_analysis()
    else:
        prompt = (
            "Analyze this selfie image and provide a detailed style analysis. Focus on:\n\n"
            "1. Face shape analysis (oval, round, square, heart, diamond)\n"
            "2. Skin tone assessment (warm, cool, neutral undertones)\n"
            "3. Style preference detection from visible clothing/accessories\n"
            "4. Body type assessment from what's visible\n"
            "5. Overall style recommendations based on the analysis\n\n"
            "Please respond in this exact JSON format:\n"
            '{"faceShape": "", "skinTone": "", "style": "", "bodyType": "", "recommendations": ""}'
        )
        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": _as_data_url(image_base64)}},
            ],
        }]
        raw = _chat_json(VISION_MODEL, messages, action="selfie analysis", temperature=0.3, json_mode=False)

    try:
        return schemas.SelfieAnalysis.model_validate(raw)
    except PydanticValidationError as e:
        logger.error(f"Selfie analysis failed validation: {e}")
        raise ExternalServiceError() from e


def embed_texts(texts: List[str]) -> List[List[float]]:
    """One embedding per input text, in input order."""
    if not texts:
        return []
    if USE_MOCK_AI:
        return [_mock_embedding(text) for text in texts]

    client = _require_client()
    try:
        response = client.embeddings.create(model=EMBEDDING_MODEL, input=texts)
    except openai.OpenAIError as e:
        raise _translate_provider_error(e, "embedding") from e
    return [item.embedding for item in sorted(response.data, key=lambda item: item.index)]


# --- Main execution block for direct testing of this file ---
if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(levelname)s - %(name)s - %(message)s')
    logger.info(f"Testing AI Core (USE_MOCK_AI is currently set to: {USE_MOCK_AI})")

    for piece in generate_outfit(gender="female", occasion="date", style="romantic", budget=200):
        print(f"{piece.category:<10} {piece.name:<30} ${piece.price:>8.2f}  {piece.affiliate_url}")

    print(analyze_selfie(base64.b64encode(b"not really a jpeg").decode("ascii")).model_dump_json(indent=2, by_alias=True))
