"""Affiliates sub-client.

Contractors browse the affiliate directory at /common/affiliates.

This is an internal module. Import from `ezclient` instead.
"""

from ezclient._base import AsyncBaseClient
from ezclient.models import Affiliate


class AffiliatesClient(AsyncBaseClient):
    """Client for the affiliate directory."""

    async def browse(self, search: str | None = None) -> list[Affiliate]:
        """List affiliates, optionally filtered by a search string.

        The backend has no search parameter; the filter matches name,
        company, email and phone locally.
        """
        envelope = await self._get("/common/affiliates")
        affiliates = [Affiliate.model_validate(a) for a in envelope.items("affiliates")]
        if search and search.strip():
            affiliates = [a for a in affiliates if a.matches(search)]
        return affiliates
