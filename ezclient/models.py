"""Response models for the EZSubcontractor API client.

This module defines the response envelope every backend endpoint returns
and the entity models the sub-clients produce.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Items held in optimistic collections are keyed by this type.
ItemId = Union[int, str]

# Prefix of client-generated placeholder ids. Server ids never use it.
TEMP_ID_PREFIX = "tmp-"

__all__ = [
    "ItemId",
    "TEMP_ID_PREFIX",
    "is_temp_id",
    "normalize_message",
    "Envelope",
    "UserProfile",
    "LoginResult",
    "Project",
    "Contractor",
    "Card",
    "Ad",
    "AdPlacement",
    "AdTransaction",
    "ChatContact",
    "ChatMessage",
    "MessageStatus",
    "SubscriptionPlan",
    "Subscription",
    "PromoCode",
    "Transaction",
    "Specialization",
    "Affiliate",
    "RatingAuthor",
    "Rating",
    "average_rating",
    "Notification",
    "Blog",
    "Faq",
    "Page",
    "HowItWorks",
]


def is_temp_id(item_id: Any) -> bool:
    """Return True if ``item_id`` is a client-generated placeholder id."""
    return isinstance(item_id, str) and item_id.startswith(TEMP_ID_PREFIX)


def normalize_message(message: Any) -> str | None:
    """Flatten an envelope ``message`` into a single string.

    The backend sends either a string or a list of strings (Laravel-style
    validation bags may also arrive as ``{field: [messages]}``).

    Args:
        message: Raw ``message`` value from a response body.

    Returns:
        The joined message, or None if there is nothing usable.
    """
    if message is None:
        return None
    if isinstance(message, str):
        return message.strip() or None
    if isinstance(message, dict):
        parts: list[Any] = []
        for value in message.values():
            parts.extend(value if isinstance(value, list) else [value])
        message = parts
    if isinstance(message, list):
        texts = [str(m).strip() for m in message if m is not None and str(m).strip()]
        return "; ".join(texts) or None
    return str(message)


class Envelope(BaseModel):
    """The ``{success, data?, message?}`` wrapper around every response.

    Attributes:
        success: Whether the backend reports the operation as successful.
        data: Payload; a list, a paginated wrapper, or an object.
        message: A string or a list of strings.
    """

    model_config = ConfigDict(extra="allow")

    success: bool = True
    data: Any = None
    message: Union[str, list[Any], dict[str, Any], None] = None

    @property
    def text(self) -> str | None:
        """The normalized human-readable message, if any."""
        return normalize_message(self.message)

    def items(self, *keys: str) -> list[Any]:
        """Unwrap ``data`` into a plain list.

        Handles a bare list, a paginated ``{"data": [...]}`` wrapper, and
        named wrappers such as ``{"projects": {"data": [...]}}``. Keys are
        tried in order before the generic ``data`` key.

        Args:
            *keys: Named wrapper keys to look under first.

        Returns:
            The list of raw items, or an empty list when none is found.
        """
        return _unwrap_list(self.data, keys)


def _unwrap_list(value: Any, keys: tuple[str, ...]) -> list[Any]:
    if isinstance(value, list):
        return value
    if not isinstance(value, dict):
        return []
    for key in (*keys, "data"):
        if key in value:
            found = _unwrap_list(value[key], ())
            if found or isinstance(value[key], (list, dict)):
                return found
    return []


# Auth / profile


class UserProfile(BaseModel):
    """Profile returned by login and ``common/get-profile``."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    profile_image: Optional[str] = None


class LoginResult(BaseModel):
    """Payload of ``auth/login``."""

    token: str
    user: UserProfile


# Collection entities


class Project(BaseModel):
    """A project posted by a general contractor.

    ``is_saved`` is a shared flag: any number of projects may be saved.
    """

    model_config = ConfigDict(extra="allow")

    id: int
    title: str = ""
    description: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    budget: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    is_saved: bool = False

    @field_validator("is_saved", mode="before")
    @classmethod
    def _coerce_saved(cls, v: Any) -> bool:
        return bool(v) if v is not None else False


class Contractor(BaseModel):
    """A contractor listing. ``is_saved`` is a shared flag."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    zip: Optional[str] = None
    average_rating: Optional[float] = None
    rating_count: int = 0
    is_saved: bool = False


class Card(BaseModel):
    """A saved payment card. ``is_default`` is an exclusive flag."""

    id: str
    last4: str = "****"
    exp_month: int = 1
    exp_year: int = 2025
    brand: str = "unknown"
    name: str = "—"
    is_default: bool = False

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "Card":
        """Normalize the several card shapes the backend returns.

        Args:
            item: Raw card object; either flat or a processor payment
                method with nested ``card`` and ``billing_details``.

        Returns:
            A normalized Card.
        """
        card = item.get("card") or {}
        billing = item.get("billing_details") or {}
        return cls(
            id=str(item.get("id") or item.get("payment_method_id")),
            last4=card.get("last4") or item.get("last4") or "****",
            exp_month=card.get("exp_month") or item.get("exp_month") or 1,
            exp_year=card.get("exp_year") or item.get("exp_year") or 2025,
            brand=(card.get("brand") or item.get("brand") or "unknown").lower(),
            name=billing.get("name") or item.get("name") or "—",
            is_default=bool(item.get("is_default") or item.get("default") or False),
        )


class Ad(BaseModel):
    """An affiliate ad placement purchase."""

    model_config = ConfigDict(extra="allow")

    id: int
    ad_placement_id: Optional[int] = None
    orientation: Optional[str] = None
    description: Optional[str] = None
    horizontal_image: Optional[str] = None
    horizontal_url: Optional[str] = None
    vertical_image: Optional[str] = None
    vertical_url: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    can_pause: bool = False
    status: Optional[str] = None


class AdPlacement(BaseModel):
    """A purchasable ad slot."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""
    orientation: Optional[str] = None
    price: Optional[float] = None


class AdTransaction(BaseModel):
    """A charge for an ad placement."""

    model_config = ConfigDict(extra="allow")

    id: int
    amount: Optional[float] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None


# Chat


class MessageStatus(str, Enum):
    """Delivery status of a chat message as seen by this client."""

    SENT = "sent"
    SENDING = "sending"
    FAILED = "failed"


class ChatContact(BaseModel):
    """A conversation partner in the chat sidebar."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""
    email: Optional[str] = None
    company_name: Optional[str] = None
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    unread_count: int = 0


class ChatMessage(BaseModel):
    """A chat message.

    Attributes:
        id: Server id, or a ``tmp-`` placeholder id before confirmation.
        sender_id: Sending user id.
        receiver_id: Receiving user id.
        message: Message body.
        attachment: Attachment references (URLs or file names).
        created_at: Creation timestamp; messages display in ascending order.
        status: Local delivery status.
    """

    model_config = ConfigDict(extra="ignore")

    id: ItemId
    sender_id: Optional[int] = None
    receiver_id: Optional[int] = None
    message: str = ""
    attachment: list[Any] = Field(default_factory=list)
    created_at: datetime
    status: MessageStatus = MessageStatus.SENT

    @field_validator("attachment", mode="before")
    @classmethod
    def _coerce_attachment(cls, v: Any) -> list[Any]:
        if v is None:
            return []
        if isinstance(v, list):
            return v
        return [v]

    @field_validator("message", mode="before")
    @classmethod
    def _coerce_message(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Backend timestamps without an offset are UTC.
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    @property
    def is_placeholder(self) -> bool:
        """True while this message carries a client-generated id."""
        return is_temp_id(self.id)


# Subscriptions


class SubscriptionPlan(BaseModel):
    """A purchasable subscription plan."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""
    price: float = 0.0
    interval: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_free(self) -> bool:
        """Free plans skip payment tokenization."""
        return self.price <= 0


class Subscription(BaseModel):
    """The caller's subscription record."""

    model_config = ConfigDict(extra="allow")

    id: int
    plan_id: Optional[int] = None
    status: Optional[str] = None
    ends_at: Optional[datetime] = None


class PromoCode(BaseModel):
    """A validated promo code."""

    model_config = ConfigDict(extra="allow")

    code: str
    type: str = "fixed"
    value: float = 0.0

    def apply(self, total: float) -> float:
        """Return ``total`` after this discount, never below zero."""
        if self.type == "percent":
            return max(total - total * self.value / 100, 0.0)
        return max(total - self.value, 0.0)


class Transaction(BaseModel):
    """A subscription billing transaction."""

    model_config = ConfigDict(extra="allow")

    id: int
    amount: Optional[float] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None


# Directory and reviews


class Specialization(BaseModel):
    """A trade category used by project and registration forms."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""


class Affiliate(BaseModel):
    """An affiliate listed for contractors."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None
    role: Optional[str] = None
    profile_image_url: Optional[str] = None

    def matches(self, query: str) -> bool:
        """Case-insensitive match on name, company, email or phone."""
        query = query.strip().lower()
        fields = (self.name, self.company_name, self.email, self.phone)
        return any(query in f.lower() for f in fields if f)


class RatingAuthor(BaseModel):
    """The user who left a rating."""

    model_config = ConfigDict(extra="allow")

    id: Optional[int] = None
    name: str = "Anonymous"
    email: Optional[str] = None
    phone: Optional[str] = None
    profile_image_url: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _default_name(cls, v: Any) -> str:
        return v or "Anonymous"


class Rating(BaseModel):
    """A rating received by the logged-in user.

    The backend sends ``rating`` as a decimal string such as ``"4.50"``.
    """

    model_config = ConfigDict(extra="allow")

    id: int
    user_id: Optional[int] = None
    rated_user_id: Optional[int] = None
    rating: float = 0.0
    comment: str = ""
    created_at: Optional[datetime] = None
    rated_given_by_user: RatingAuthor = Field(default_factory=RatingAuthor)

    @field_validator("comment", mode="before")
    @classmethod
    def _coerce_comment(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("rated_given_by_user", mode="before")
    @classmethod
    def _coerce_author(cls, v: Any) -> Any:
        return {} if v is None else v


def average_rating(ratings: list[Rating]) -> float:
    """Mean rating rounded to one decimal; 0.0 when there are none."""
    if not ratings:
        return 0.0
    return round(sum(r.rating for r in ratings) / len(ratings), 1)


# Content


class Notification(BaseModel):
    """An in-app notification record."""

    model_config = ConfigDict(extra="allow")

    id: ItemId
    title: str = ""
    body: str = ""
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class Blog(BaseModel):
    """A blog post."""

    model_config = ConfigDict(extra="allow")

    id: int
    slug: str = ""
    title: str = ""
    excerpt: Optional[str] = None
    content: Optional[str] = None


class Faq(BaseModel):
    """A frequently asked question."""

    model_config = ConfigDict(extra="allow")

    id: int
    question: str = ""
    answer: str = ""


class Page(BaseModel):
    """A static content page such as terms and conditions."""

    model_config = ConfigDict(extra="allow")

    slug: str = ""
    title: str = ""
    content: str = ""


class HowItWorks(BaseModel):
    """The "how it works" block of a role's landing page."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    description: str = ""
    image: Optional[str] = None
