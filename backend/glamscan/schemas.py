import json
import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# --- Shared types & sanitizers ---

Gender = Literal["male", "female", "non_binary", "prefer_not_to_say"]
Season = Literal["spring", "summer", "fall", "winter"]
Occasion = Literal["casual", "formal", "business", "party", "date", "vacation"]
Style = Literal["minimalist", "bohemian", "classic", "trendy", "edgy", "romantic"]
VoteType = Literal["upvote", "downvote"]
FriendStatus = Literal["pending", "accepted", "blocked"]
MessageType = Literal["text", "image", "post_share"]
SavedItemType = Literal["post", "style_combo"]

# Null bytes and control characters, newlines and tabs excepted
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_DISPLAY_NAME = re.compile(r"^[a-zA-Z0-9\s\-_.]+$")
_DATA_URL_IMAGE = re.compile(r"^data:image/(jpeg|jpg|png|gif|webp);base64,")
_BARE_BASE64 = re.compile(r"^[A-Za-z0-9+/]+=*$")


def sanitize_text(value: str, max_length: int, empty_message: str = "Content cannot be empty") -> str:
    cleaned = _CONTROL_CHARS.sub("", value).strip()
    if not cleaned:
        raise ValueError(empty_message)
    if len(cleaned) > max_length:
        raise ValueError(f"Content exceeds maximum length of {max_length} characters")
    return cleaned


def collapse_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value.strip())


def check_http_url(value: str, message: str = "Must be a valid URL") -> str:
    value = value.strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(message)
    return value


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Users & auth ---

class RegisterRequest(CamelModel):
    email: EmailStr = Field(..., description="Account email, normalized to lower case.")
    password: str = Field(..., min_length=1, max_length=128)
    display_name: str = Field(..., min_length=1, max_length=100)
    gender: Optional[Gender] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            if len(value) > 254:
                raise ValueError("Invalid email format")
        return value

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, value: str) -> str:
        if not _DISPLAY_NAME.match(value):
            raise ValueError("Display name contains invalid characters")
        value = value.strip()
        if not value:
            raise ValueError("Display name is required")
        return value


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class UserResponse(CamelModel):
    id: int
    email: str
    display_name: str
    avatar_url: Optional[str] = None
    role: str
    gender: Optional[str] = None
    style_preferences: Optional[Any] = None


class UserEnvelope(CamelModel):
    user: UserResponse


class SessionInfo(CamelModel):
    is_near_expiry: bool
    expires_at: datetime


class SessionResponse(CamelModel):
    user: UserResponse
    session_info: SessionInfo


class SuccessResponse(CamelModel):
    success: bool = True


class ProfileResponse(CamelModel):
    id: int
    email: str
    display_name: str
    avatar_url: Optional[str] = None


class ProfileEnvelope(CamelModel):
    user: ProfileResponse


class ProfileUpdateRequest(CamelModel):
    """
    Partial profile update. An explicit `avatarUrl: null` clears the avatar,
    which is why callers look at `model_fields_set` rather than None checks.
    """
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = sanitize_text(value, 100, empty_message="Display name must be at least 2 characters")
        if len(value) < 2:
            raise ValueError("Display name must be at least 2 characters")
        return value

    @field_validator("avatar_url")
    @classmethod
    def validate_avatar_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = check_http_url(value, "Avatar URL must be a valid http or https URL")
        if len(value) > 500:
            raise ValueError("Avatar URL is too long")
        return value


# --- Posts, votes & comments ---

class ProductTag(CamelModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    price: Optional[float] = Field(None, gt=0)
    url: Optional[str] = None
    x: float = Field(..., ge=0, le=100, description="Horizontal position, percent of image width.")
    y: float = Field(..., ge=0, le=100, description="Vertical position, percent of image height.")


class PostResponse(CamelModel):
    id: int
    image_url: str
    caption: Optional[str] = None
    product_tags: Optional[List[Dict[str, Any]]] = None
    created_at: datetime
    author_id: int
    author_display_name: str
    author_avatar_url: Optional[str] = None
    upvotes: int = 0
    downvotes: int = 0
    current_user_vote: Optional[VoteType] = None


class FeedResponse(CamelModel):
    posts: List[PostResponse]
    next_cursor: Optional[int] = None


class PostDetailRequest(CamelModel):
    post_id: int = Field(..., gt=0)


class VoteRequest(CamelModel):
    post_id: int = Field(..., gt=0)
    vote_type: VoteType


class VoteResponse(CamelModel):
    post_id: int
    upvotes: int
    downvotes: int


class CommentCreateRequest(CamelModel):
    post_id: int = Field(..., gt=0)
    content: str
    parent_id: Optional[int] = Field(None, gt=0)

    @field_validator("content")
    @classmethod
    def clean_content(cls, value: str) -> str:
        return sanitize_text(value, 1000)


class CommentResponse(CamelModel):
    id: int
    post_id: int
    content: str
    created_at: datetime
    parent_id: Optional[int] = None
    reply_count: int = 0
    author_id: int
    author_display_name: str
    author_avatar_url: Optional[str] = None
    replies: List["CommentResponse"] = Field(default_factory=list)


class CommentsResponse(CamelModel):
    comments: List[CommentResponse]


# --- Friends ---

class FriendRequestCreate(CamelModel):
    addressee_id: int = Field(..., gt=0)


class FriendRespondRequest(CamelModel):
    requester_id: int = Field(..., gt=0)
    action: Literal["accept", "decline", "block"]


class FriendRespondResponse(CamelModel):
    success: bool = True
    action: str


class FriendListItem(CamelModel):
    id: int
    display_name: str
    avatar_url: Optional[str] = None
    requester_id: Optional[int] = None


class FriendSearchResult(CamelModel):
    id: int
    display_name: str
    avatar_url: Optional[str] = None
    friend_status: Optional[FriendStatus] = None
    is_request_sent_by_me: bool = False


# --- Messaging ---

class MessageSendRequest(CamelModel):
    conversation_id: Optional[int] = Field(None, gt=0)
    recipient_id: Optional[int] = Field(None, gt=0)
    content: str
    message_type: MessageType = "text"
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("content")
    @classmethod
    def clean_content(cls, value: str) -> str:
        return sanitize_text(value, 2000)

    @field_validator("metadata")
    @classmethod
    def limit_metadata(cls, value: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if value is not None and len(json.dumps(value)) > 5000:
            raise ValueError("Metadata too large")
        return value

    @model_validator(mode="after")
    def require_target(self) -> "MessageSendRequest":
        if self.conversation_id is None and self.recipient_id is None:
            raise ValueError("Either conversationId or recipientId is required")
        return self


class MessageResponse(CamelModel):
    id: int
    conversation_id: int
    sender_id: int
    content: str
    message_type: str
    metadata: Optional[Dict[str, Any]] = None
    read_by: List[int] = Field(default_factory=list)
    created_at: datetime


class ConversationMessagesResponse(CamelModel):
    messages: List[MessageResponse]
    next_cursor: Optional[str] = None


class ParticipantResponse(CamelModel):
    id: int
    display_name: str
    avatar_url: Optional[str] = None


class LastMessage(CamelModel):
    content: str
    sender_id: int
    created_at: datetime


class ConversationSummary(CamelModel):
    conversation_id: int
    participants: List[ParticipantResponse]
    last_message: Optional[LastMessage] = None
    unread_count: int = 0
    updated_at: datetime


class ConversationReadRequest(CamelModel):
    conversation_id: int = Field(..., gt=0)


class ConversationReadResponse(CamelModel):
    success: bool = True
    marked_as_read_count: int


# --- Notifications ---

class NotificationResponse(CamelModel):
    id: int
    type: str
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime


class Pagination(CamelModel):
    page: int
    limit: int
    total_count: int
    total_pages: int


class NotificationListResponse(CamelModel):
    notifications: List[NotificationResponse]
    pagination: Pagination


class NotificationsReadRequest(CamelModel):
    notification_ids: List[int] = Field(default_factory=list)


class NotificationsReadResponse(CamelModel):
    success: bool = True
    updated_count: int


class UnreadCountResponse(CamelModel):
    count: int


# --- Style combos ---

class StyleComboItemInput(CamelModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., gt=0, le=999999)
    image_url: str
    affiliate_url: Optional[str] = None
    item_order: Optional[int] = Field(None, ge=0)

    @field_validator("name")
    @classmethod
    def clean_name(cls, value: str) -> str:
        value = collapse_whitespace(value)
        if not value:
            raise ValueError("Item name is required")
        return value

    @field_validator("image_url")
    @classmethod
    def check_image_url(cls, value: str) -> str:
        return check_http_url(value, "A valid image URL is required")

    @field_validator("affiliate_url")
    @classmethod
    def check_affiliate_url(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return check_http_url(value, "A valid affiliate URL is required")


class StyleComboInput(CamelModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    cover_image_url: str
    shop_url: str
    total_price: float = Field(..., gt=0, le=999999)
    season: Optional[Season] = None
    occasion: Optional[Occasion] = None
    style: Optional[Style] = None
    is_sponsored: bool = False
    items: List[StyleComboItemInput] = Field(..., min_length=1, max_length=10)

    @field_validator("title")
    @classmethod
    def clean_title(cls, value: str) -> str:
        value = collapse_whitespace(value)
        if not value:
            raise ValueError("Title is required")
        return value

    @field_validator("description")
    @classmethod
    def clean_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = collapse_whitespace(value)
        if not value:
            raise ValueError("Description cannot be empty if provided")
        return value

    @field_validator("cover_image_url")
    @classmethod
    def check_cover_image_url(cls, value: str) -> str:
        return check_http_url(value, "A valid cover image URL is required")

    @field_validator("shop_url")
    @classmethod
    def check_shop_url(cls, value: str) -> str:
        return check_http_url(value, "A valid shop URL is required")


class StyleComboUpdateRequest(StyleComboInput):
    id: int = Field(..., gt=0)


class StyleComboIdRequest(CamelModel):
    id: int = Field(..., gt=0)


class StyleComboItemResponse(CamelModel):
    id: int
    name: str
    price: float
    image_url: str
    affiliate_url: Optional[str] = None
    item_order: Optional[int] = None


class StyleComboResponse(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    cover_image_url: str
    shop_url: str
    total_price: float
    season: Optional[str] = None
    occasion: Optional[str] = None
    style: Optional[str] = None
    is_sponsored: bool = False
    created_at: datetime
    items: List[StyleComboItemResponse] = Field(default_factory=list)


class StyleComboDetailResponse(CamelModel):
    style_combo: StyleComboResponse


class StyleComboListItemEntry(CamelModel):
    name: str
    price: float
    image_url: str
    affiliate_url: Optional[str] = None
    item_order: Optional[int] = None


class StyleComboListEntry(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    cover_image_url: str
    shop_url: str
    total_price: float
    season: Optional[str] = None
    occasion: Optional[str] = None
    style: Optional[str] = None
    created_at: datetime
    items: List[StyleComboListItemEntry] = Field(default_factory=list)


class StyleComboListResponse(CamelModel):
    style_combos: List[StyleComboListEntry]
    total_count: int
    page: int
    page_size: int


class StyleComboWriteResponse(CamelModel):
    success: bool = True
    style_combo_id: int


class DeleteResponse(CamelModel):
    success: bool = True
    message: str


class GenerateLinksRequest(CamelModel):
    description: str = Field(..., min_length=10, max_length=500)
    title: Optional[str] = None
    season: Optional[Season] = None
    style: Optional[Style] = None


class GeneratedLink(CamelModel):
    name: str = Field(..., min_length=1)
    price: float = Field(..., gt=0)
    image_url: str
    affiliate_url: str

    @field_validator("image_url", "affiliate_url")
    @classmethod
    def check_urls(cls, value: str) -> str:
        return check_http_url(value)


class GeneratedLinksPayload(CamelModel):
    items: List[GeneratedLink] = Field(..., min_length=1)


# --- AI outfits & recommendations ---

class OutfitRequest(CamelModel):
    occasion: Optional[str] = Field(None, min_length=3)
    style: Optional[str] = Field(None, min_length=3)
    budget: Optional[float] = Field(None, gt=0)
    other_preferences: Optional[str] = Field(None, max_length=500)


class OutfitItem(CamelModel):
    name: str = Field(..., min_length=1)
    description: str
    category: str
    price: float = Field(..., gt=0)
    image_url: str
    affiliate_url: str

    @field_validator("image_url", "affiliate_url")
    @classmethod
    def check_urls(cls, value: str) -> str:
        return check_http_url(value)


class OutfitResponse(CamelModel):
    """Also the JSON shape the model is asked to answer with."""
    outfit: List[OutfitItem] = Field(default_factory=list)


class SelfieRequest(CamelModel):
    selfie_base64: str = Field(..., min_length=1)

    @field_validator("selfie_base64")
    @classmethod
    def check_image_payload(cls, value: str) -> str:
        if not (_DATA_URL_IMAGE.match(value) or _BARE_BASE64.match(value)):
            raise ValueError("Invalid image format. Must be a valid base64 encoded image.")
        return value


class SelfieAnalysis(CamelModel):
    face_shape: str
    skin_tone: str
    style: str
    body_type: str
    recommendations: str


class Recommendation(CamelModel):
    type: Literal["outfit", "makeup"]
    name: str
    description: str
    price: float
    image_url: str
    affiliate_url: str


class RecommendationsResponse(CamelModel):
    recommendations: List[Recommendation]


# --- Saved items ---

class SavedItemToggleRequest(CamelModel):
    item_id: int = Field(..., gt=0)
    item_type: SavedItemType


class SavedItemToggleResponse(CamelModel):
    saved: bool


class SavedPost(CamelModel):
    item_type: Literal["post"] = "post"
    id: int
    user_id: int
    image_url: str
    caption: Optional[str] = None
    product_tags: Optional[List[Dict[str, Any]]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class SavedStyleCombo(StyleComboResponse):
    item_type: Literal["style_combo"] = "style_combo"
    updated_at: Optional[datetime] = None


class SavedItemsListResponse(CamelModel):
    saved_items: List[Union[SavedPost, SavedStyleCombo]]
    total_count: int
    page: int
    page_size: int
