"""Environment-driven settings.

Every field can be overridden with an ``EZSUB_`` prefixed environment
variable or a ``.env`` file. The components that consume a group of
settings expose a ``from_settings()`` constructor:
- AsyncEZClient: API_BASE_URL, REQUEST_TIMEOUT, RETRY_ENABLED, MAX_RETRIES
- MutationController: MUTATION_TIMEOUT
- EffectBus: TOAST_DURATION
- RedisChannel: REDIS_URL, REALTIME_RECONNECT_MAX_DELAY
- Conversation: CHAT_CHANNEL_PREFIX, CHAT_MESSAGE_EVENT
- PaymentTokenizer: STRIPE_PUBLISHABLE_KEY, STRIPE_API_BASE
"""

from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:8000/api/"
    REQUEST_TIMEOUT: float = 30.0
    RETRY_ENABLED: bool = False
    MAX_RETRIES: int = 3

    # Deadline for the remote half of an optimistic mutation.
    MUTATION_TIMEOUT: float = 15.0
    TOAST_DURATION: float = 4.0

    REDIS_URL: str = "redis://localhost:6379/0"
    CHAT_CHANNEL_PREFIX: str = "chat."
    CHAT_MESSAGE_EVENT: str = "message-sent"
    REALTIME_RECONNECT_MAX_DELAY: float = 30.0

    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com"

    model_config = ConfigDict(
        env_prefix="EZSUB_",
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
