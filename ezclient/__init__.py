"""EZSubcontractor API Client Library.

This package provides a typed async Python client for the EZSubcontractor
marketplace backend, plus the payment tokenizer used before handing card
tokens to the backend.

Example:
    Asynchronous usage::

        from ezclient import AsyncEZClient

        async with AsyncEZClient(base_url="https://api.example.com/api/") as client:
            await client.auth.login("gc@example.com", "secret")
            projects = await client.projects.my_projects()

Exports:
    AsyncEZClient: Asynchronous client for the backend REST API.
    Session: Bearer token and profile fields shared by the clients.
    PaymentTokenizer: Exchanges card data for a payment method id.

    Exceptions:
        EZClientError: Base exception for all client errors.
        ConnectionError: Failed to connect to the server.
        TimeoutError: Request timed out.
        ValidationError: Input rejected locally.
        AuthError: Missing or expired credential.
        IntegrationError: Payment tokenization failed.
        MalformedResponseError: Body is not a JSON envelope.
        APIError: Server returned an error response.
        NotFoundError: Resource not found (HTTP 404).
        ServerError: Server-side error (HTTP 5xx).
"""

from ezclient._ads import AdsClient
from ezclient._affiliates import AffiliatesClient
from ezclient._auth import AuthClient
from ezclient._cards import CardsClient
from ezclient._chat import ChatClient
from ezclient._content import ContentClient
from ezclient._contractors import ContractorsClient
from ezclient._payments import BillingDetails, CardDetails, PaymentTokenizer
from ezclient._projects import ProjectsClient
from ezclient._ratings import RatingsClient
from ezclient._subscriptions import SubscriptionsClient
from ezclient.client import AsyncEZClient
from ezclient.exceptions import (
    APIError,
    AuthError,
    ConnectionError,
    EZClientError,
    IntegrationError,
    MalformedResponseError,
    NotFoundError,
    ServerError,
    TimeoutError,
    ValidationError,
)
from ezclient.models import (
    Ad,
    AdPlacement,
    AdTransaction,
    Affiliate,
    Blog,
    Card,
    ChatContact,
    ChatMessage,
    Contractor,
    Envelope,
    Faq,
    HowItWorks,
    ItemId,
    LoginResult,
    MessageStatus,
    Notification,
    Page,
    Project,
    PromoCode,
    Rating,
    RatingAuthor,
    Specialization,
    Subscription,
    SubscriptionPlan,
    Transaction,
    UserProfile,
    average_rating,
    is_temp_id,
)
from ezclient.session import Session

__all__ = [
    # Main client
    "AsyncEZClient",
    "Session",
    "PaymentTokenizer",
    "CardDetails",
    "BillingDetails",
    # Sub-clients
    "AuthClient",
    "ProjectsClient",
    "ContractorsClient",
    "CardsClient",
    "AdsClient",
    "SubscriptionsClient",
    "ChatClient",
    "ContentClient",
    "AffiliatesClient",
    "RatingsClient",
    # Exceptions
    "EZClientError",
    "ConnectionError",
    "TimeoutError",
    "ValidationError",
    "AuthError",
    "IntegrationError",
    "MalformedResponseError",
    "APIError",
    "NotFoundError",
    "ServerError",
    # Models
    "Envelope",
    "ItemId",
    "is_temp_id",
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
    "Rating",
    "RatingAuthor",
    "average_rating",
    "Notification",
    "Blog",
    "Faq",
    "Page",
    "HowItWorks",
]
