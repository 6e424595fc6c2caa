"""Ratings sub-client.

This is an internal module. Import from `ezclient` instead.
"""

from ezclient._base import AsyncBaseClient
from ezclient.models import Rating


class RatingsClient(AsyncBaseClient):
    """Client for ratings left on the logged-in user's work."""

    async def mine(self) -> list[Rating]:
        """List ratings received by the logged-in user."""
        envelope = await self._get("/common/rating/my-ratings")
        return [Rating.model_validate(r) for r in envelope.items("ratings")]
