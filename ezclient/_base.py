"""Base class for all sub-clients.

This module provides the base class that all resource-specific sub-clients
inherit from. It provides common functionality for making HTTP requests
and accessing the shared HTTP client.

This is an internal module and should not be imported directly by users.
"""

from typing import TYPE_CHECKING, Any, Optional

from ezclient.exceptions import ValidationError
from ezclient.models import Envelope

if TYPE_CHECKING:
    from ezclient._http import AsyncHTTPClient


class AsyncBaseClient:
    """Base class for asynchronous sub-clients.

    All resource clients (ProjectsClient, CardsClient, ChatClient, etc.)
    inherit from this class. It provides access to the shared async HTTP
    client and convenience methods for making requests.

    Attributes:
        _http: The shared async HTTP client for making requests.
    """

    def __init__(self, http_client: "AsyncHTTPClient") -> None:
        """Initialize the async sub-client.

        Args:
            http_client: The shared async HTTP client instance.
        """
        self._http = http_client

    async def _get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        auth: bool = True,
    ) -> Envelope:
        """Make an async GET request."""
        return await self._http.get(path, params=params, auth=auth)

    async def _post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        files: list[tuple[str, Any]] | None = None,
        auth: bool = True,
    ) -> Envelope:
        """Make an async POST request.

        Args:
            path: The URL path.
            json: JSON body to send.
            params: Query parameters.
            data: Form fields.
            files: Multipart file parts.
            auth: Whether the endpoint requires the bearer token.

        Returns:
            The response envelope.
        """
        return await self._http.post(
            path, json=json, params=params, data=data, files=files, auth=auth
        )

    async def _delete(self, path: str, params: dict[str, Any] | None = None) -> Envelope:
        """Make an async DELETE request."""
        return await self._http.delete(path, params=params)


def require(value: Optional[Any], field: str, message: str | None = None) -> Any:
    """Reject a missing or blank required field before any request.

    Args:
        value: The field value.
        field: Field name for the error.
        message: Custom message; defaults to "<field> is required".

    Returns:
        The value, unchanged.

    Raises:
        ValidationError: If the value is None or a blank string.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(message or f"{field.replace('_', ' ').capitalize()} is required", field=field)
    return value
