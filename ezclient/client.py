"""Main EZSubcontractor client class.

This module provides AsyncEZClient, the entry point for talking to the
marketplace backend. It exposes namespaced sub-clients (``client.projects``,
``client.cards``, ``client.chat`` ...) that share one HTTP connection pool
and one session.

Example:
    Asynchronous usage::

        from ezclient import AsyncEZClient

        async with AsyncEZClient(base_url="https://api.example.com/api/") as client:
            await client.auth.login("affiliate@example.com", "secret")
            cards = await client.cards.get_all()
"""

from typing import Any

from ezclient._ads import AdsClient
from ezclient._affiliates import AffiliatesClient
from ezclient._auth import AuthClient
from ezclient._cards import CardsClient
from ezclient._chat import ChatClient
from ezclient._content import ContentClient
from ezclient._contractors import ContractorsClient
from ezclient._http import AsyncHTTPClient
from ezclient._projects import ProjectsClient
from ezclient._ratings import RatingsClient
from ezclient._subscriptions import SubscriptionsClient
from ezclient.config import Settings, settings as default_settings
from ezclient.session import Session


class AsyncEZClient:
    """Asynchronous client for the EZSubcontractor REST API.

    Provides a unified interface to all backend endpoints through namespaced
    sub-clients. Supports the async context manager protocol for automatic
    resource cleanup.

    Attributes:
        session: The session shared by every sub-client.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api/",
        session: Session | None = None,
        timeout: float = 30.0,
        retry_enabled: bool = False,
        max_retries: int = 3,
        transport: Any = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: The backend API base URL.
            session: Session to authenticate with; a logged-out one is
                created when omitted.
            timeout: Request timeout in seconds (default: 30.0).
            retry_enabled: Whether to retry on connection errors, timeouts
                and HTTP 502/503/504 with exponential backoff.
            max_retries: Maximum number of retry attempts when retry is enabled.
            transport: Custom HTTP transport (e.g., ASGITransport for testing).
        """
        self._http = AsyncHTTPClient(
            base_url=base_url,
            session=session,
            timeout=timeout,
            retry_enabled=retry_enabled,
            max_retries=max_retries,
            transport=transport,
        )

        # Initialize sub-clients (lazy initialization via properties)
        self._auth: AuthClient | None = None
        self._projects: ProjectsClient | None = None
        self._contractors: ContractorsClient | None = None
        self._cards: CardsClient | None = None
        self._ads: AdsClient | None = None
        self._subscriptions: SubscriptionsClient | None = None
        self._chat: ChatClient | None = None
        self._content: ContentClient | None = None
        self._affiliates: AffiliatesClient | None = None
        self._ratings: RatingsClient | None = None

    @classmethod
    def from_settings(
        cls,
        config: Settings | None = None,
        session: Session | None = None,
        transport: Any = None,
    ) -> "AsyncEZClient":
        """Build a client from environment-driven settings."""
        config = config or default_settings
        return cls(
            base_url=config.API_BASE_URL,
            session=session,
            timeout=config.REQUEST_TIMEOUT,
            retry_enabled=config.RETRY_ENABLED,
            max_retries=config.MAX_RETRIES,
            transport=transport,
        )

    @property
    def session(self) -> Session:
        """The session shared by every sub-client."""
        return self._http.session

    async def __aenter__(self) -> "AsyncEZClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the client and release resources."""
        await self._http.close()

    # Sub-client properties (lazy initialization)

    @property
    def auth(self) -> AuthClient:
        """Login, logout, password recovery and profile."""
        if self._auth is None:
            self._auth = AuthClient(self._http)
        return self._auth

    @property
    def projects(self) -> ProjectsClient:
        """Browse, post, edit, delete and save projects."""
        if self._projects is None:
            self._projects = ProjectsClient(self._http)
        return self._projects

    @property
    def contractors(self) -> ContractorsClient:
        """Browse and save contractors."""
        if self._contractors is None:
            self._contractors = ContractorsClient(self._http)
        return self._contractors

    @property
    def cards(self) -> CardsClient:
        """Saved payment cards (affiliates)."""
        if self._cards is None:
            self._cards = CardsClient(self._http)
        return self._cards

    @property
    def ads(self) -> AdsClient:
        """Ad placements and ads (affiliates)."""
        if self._ads is None:
            self._ads = AdsClient(self._http)
        return self._ads

    @property
    def subscriptions(self) -> SubscriptionsClient:
        """Plans, promo codes and subscriptions."""
        if self._subscriptions is None:
            self._subscriptions = SubscriptionsClient(self._http)
        return self._subscriptions

    @property
    def chat(self) -> ChatClient:
        """Chat contacts, history and sending."""
        if self._chat is None:
            self._chat = ChatClient(self._http)
        return self._chat

    @property
    def content(self) -> ContentClient:
        """Blogs, FAQs, static pages and notifications."""
        if self._content is None:
            self._content = ContentClient(self._http)
        return self._content

    @property
    def affiliates(self) -> AffiliatesClient:
        """Affiliate directory for contractors."""
        if self._affiliates is None:
            self._affiliates = AffiliatesClient(self._http)
        return self._affiliates

    @property
    def ratings(self) -> RatingsClient:
        """Ratings received by the logged-in user."""
        if self._ratings is None:
            self._ratings = RatingsClient(self._http)
        return self._ratings
