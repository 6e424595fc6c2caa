"""User-feedback effects emitted by the state controllers.

Controllers never touch a rendering layer. They emit effect values on an
EffectBus and whatever presents the UI subscribes to it:
- Toast: a transient success/error/info notification
- RedirectToLogin: the credential is gone and the user must log in again
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

from pydantic import BaseModel, Field

from ezclient.config import Settings, settings as default_settings
from ezclient.exceptions import AuthError
from ezclient.session import Session
from ezstate.errors import OperationFailed, as_load_failed, as_mutation_failed, describe_error

logger = logging.getLogger(__name__)


class ToastLevel(str, Enum):
    """Visual severity of a toast."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Toast(BaseModel):
    """A transient, non-blocking notification.

    Attributes:
        level: Severity.
        message: Text shown to the user.
        title: Optional heading (push-style notifications carry one).
        duration: Seconds before the toast dismisses itself.
        emitted_at: When the effect was produced.
    """

    level: ToastLevel
    message: str
    title: Optional[str] = None
    duration: float = 4.0
    emitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RedirectToLogin(BaseModel):
    """Navigate to the login screen after the credential was cleared."""

    reason: str
    target: str = "/auth/login"


Effect = Union[Toast, RedirectToLogin]
EffectHandler = Callable[[Effect], None]


class EffectBus:
    """Fan-out of effects to presentation-layer subscribers.

    Handlers run synchronously in subscription order. A failing handler is
    logged and does not stop delivery to the others.

    Example:
        bus = EffectBus()
        seen = []
        bus.subscribe(seen.append)
        bus.error("Failed to save project")
    """

    def __init__(self, toast_duration: float = 4.0) -> None:
        self.toast_duration = toast_duration
        self._handlers: list[EffectHandler] = []

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "EffectBus":
        """Build a bus whose toasts last ``TOAST_DURATION`` seconds."""
        config = config or default_settings
        return cls(toast_duration=config.TOAST_DURATION)

    def subscribe(self, handler: EffectHandler) -> Callable[[], None]:
        """Register a handler.

        Returns:
            A callable that removes the handler again.
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def emit(self, effect: Effect) -> None:
        """Deliver an effect to every handler."""
        for handler in list(self._handlers):
            try:
                handler(effect)
            except Exception:
                logger.exception(f"Effect handler {handler!r} failed")

    def toast(self, level: ToastLevel, message: str, title: str | None = None) -> Toast:
        """Emit a toast and return it."""
        toast = Toast(level=level, message=message, title=title, duration=self.toast_duration)
        self.emit(toast)
        return toast

    def success(self, message: str) -> Toast:
        return self.toast(ToastLevel.SUCCESS, message)

    def error(self, message: str) -> Toast:
        return self.toast(ToastLevel.ERROR, message)

    def info(self, message: str, title: str | None = None) -> Toast:
        return self.toast(ToastLevel.INFO, message, title=title)

    def redirect_to_login(self, reason: str) -> RedirectToLogin:
        """Emit a login redirect and return it."""
        effect = RedirectToLogin(reason=reason)
        self.emit(effect)
        return effect

    def auth_expired(self, session: Session | None, exc: BaseException) -> RedirectToLogin:
        """Clear the credential and send the user back to login."""
        if session is not None:
            session.clear()
        logger.info(f"Credential rejected, redirecting to login: {exc}")
        return self.redirect_to_login(describe_error(exc, "Please log in again."))

    def report_failure(
        self,
        exc: BaseException,
        fallback: str,
        session: Session | None = None,
        reading: bool = False,
    ) -> OperationFailed:
        """Turn an exception into the matching user feedback.

        Auth failures redirect to login instead of toasting. Everything
        else becomes an error toast with the backend message, or
        ``fallback`` when there is none.

        Returns:
            The normalized failure.
        """
        if isinstance(exc, AuthError):
            self.auth_expired(session, exc)
            return OperationFailed(describe_error(exc, fallback), cause=exc)
        failure = as_load_failed(exc, fallback) if reading else as_mutation_failed(exc, fallback)
        self.error(failure.message)
        return failure
