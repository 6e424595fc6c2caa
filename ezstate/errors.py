"""Error taxonomy for UI-facing operations.

Client exceptions (`ezclient.exceptions`) describe what went wrong on the
wire. This module classifies them into the outcomes a view acts on:

    ErrorKind.VALIDATION   local input problem; nothing was sent
    ErrorKind.AUTH         credential missing/expired; redirect to login
    ErrorKind.MUTATION     optimistic change rejected; roll back and toast
    ErrorKind.LOAD         read failed; show an empty/error placeholder
    ErrorKind.INTEGRATION  payment tokenization failed; block the backend call
"""

import asyncio
from enum import Enum
from typing import Optional

from ezclient.exceptions import (
    AuthError,
    ConnectionError,
    EZClientError,
    IntegrationError,
    MalformedResponseError,
    ServerError,
    TimeoutError,
    ValidationError,
)

GENERIC_MUTATION_MESSAGE = "Something went wrong. Please try again."
GENERIC_LOAD_MESSAGE = "Failed to load. Please try again."
TIMEOUT_MESSAGE = "The server took too long to respond. Please try again."
NETWORK_MESSAGE = "Network error. Please check your connection and try again."


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTH = "auth"
    MUTATION = "mutation"
    LOAD = "load"
    INTEGRATION = "integration"


class OperationFailed(Exception):
    """Base for normalized, user-facing failures.

    Attributes:
        message: Text suitable for a toast.
        cause: The exception that was classified, if any.
        transient: True for timeouts, network failures and 5xx answers.
    """

    kind: ErrorKind = ErrorKind.MUTATION

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        transient: bool = False,
    ) -> None:
        self.message = message
        self.cause = cause
        self.transient = transient
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class MutationFailed(OperationFailed):
    """A remote call backing an optimistic mutation failed."""

    kind = ErrorKind.MUTATION


class LoadFailed(OperationFailed):
    """A read-only fetch failed."""

    kind = ErrorKind.LOAD


def is_transient(exc: BaseException) -> bool:
    """Return True for failures worth a user-initiated retry."""
    return isinstance(exc, (TimeoutError, ConnectionError, ServerError, asyncio.TimeoutError))


def describe_error(exc: BaseException, fallback: str = GENERIC_MUTATION_MESSAGE) -> str:
    """Pick the user-facing message for an exception.

    The backend's own message is used when one was sent. Timeouts and
    network failures get fixed wording; anything else gets ``fallback``.

    Args:
        exc: The exception to describe.
        fallback: Message used when the exception carries nothing usable.

    Returns:
        A non-empty message.
    """
    if isinstance(exc, OperationFailed):
        return exc.message
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
        return TIMEOUT_MESSAGE
    if isinstance(exc, ConnectionError):
        return NETWORK_MESSAGE
    if isinstance(exc, MalformedResponseError):
        return fallback
    if isinstance(exc, EZClientError):
        return exc.message or fallback
    return fallback


def classify(exc: BaseException, reading: bool = False) -> ErrorKind:
    """Map an exception onto the taxonomy.

    Args:
        exc: The exception raised by a client call.
        reading: True when the failed call was a non-mutating read.

    Returns:
        The error kind.
    """
    if isinstance(exc, OperationFailed):
        return exc.kind
    if isinstance(exc, ValidationError):
        return ErrorKind.VALIDATION
    if isinstance(exc, AuthError):
        return ErrorKind.AUTH
    if isinstance(exc, IntegrationError):
        return ErrorKind.INTEGRATION
    return ErrorKind.LOAD if reading else ErrorKind.MUTATION


def as_mutation_failed(exc: BaseException, fallback: str = GENERIC_MUTATION_MESSAGE) -> MutationFailed:
    """Normalize any remote failure into MutationFailed."""
    if isinstance(exc, MutationFailed):
        return exc
    return MutationFailed(describe_error(exc, fallback), cause=exc, transient=is_transient(exc))


def as_load_failed(exc: BaseException, fallback: str = GENERIC_LOAD_MESSAGE) -> LoadFailed:
    """Normalize any read failure into LoadFailed."""
    if isinstance(exc, LoadFailed):
        return exc
    return LoadFailed(describe_error(exc, fallback), cause=exc, transient=is_transient(exc))
