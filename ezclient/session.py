"""Session credential shared by the HTTP layer and the state controllers.

The session is an explicit object passed to the clients. It is set at
login, cleared at logout or after a 401, and is otherwise read-only for
the lifetime of the process.
"""

import logging
from typing import Callable, Optional

from pydantic import BaseModel, PrivateAttr

logger = logging.getLogger(__name__)


class Session(BaseModel):
    """Bearer token plus the few denormalized profile fields the UI keeps.

    Attributes:
        token: Bearer token, or None when logged out.
        role: Account role ("general_contractor", "subcontractor", "affiliate").
        email: Email used to log in.
        user_id: Backend id of the logged-in user.
        subscription: Name of the active subscription, if any.
    """

    token: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None
    user_id: Optional[int] = None
    subscription: Optional[str] = None

    _listeners: list[Callable[["Session"], None]] = PrivateAttr(default_factory=list)

    @property
    def is_authenticated(self) -> bool:
        """Return True if a token is present."""
        return bool(self.token)

    def authorization_header(self) -> dict[str, str]:
        """Return the Authorization header for the current token.

        Returns:
            ``{"Authorization": "Bearer <token>"}`` or an empty dict.
        """
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def login(
        self,
        token: str,
        role: str | None = None,
        email: str | None = None,
        user_id: int | None = None,
    ) -> None:
        """Store a freshly issued credential."""
        self.token = token
        self.role = role
        self.email = email
        self.user_id = user_id
        logger.info(f"Session started for {email or 'unknown user'} (role={role})")

    def clear(self) -> None:
        """Forget the credential and profile fields.

        Registered listeners are notified after the fields are cleared.
        """
        was_authenticated = self.is_authenticated
        self.token = None
        self.role = None
        self.email = None
        self.user_id = None
        self.subscription = None
        if was_authenticated:
            logger.info("Session cleared")
            for listener in list(self._listeners):
                listener(self)

    def on_clear(self, listener: Callable[["Session"], None]) -> None:
        """Register a callback invoked when an authenticated session is cleared."""
        self._listeners.append(listener)
