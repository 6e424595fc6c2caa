"""Contractors sub-client.

This module provides ContractorsClient for browsing contractor listings
and managing the caller's saved contractors (/common/contractors/*).

This is an internal module. Import from `ezclient` instead.
"""

from ezclient._base import AsyncBaseClient
from ezclient.models import Contractor


class ContractorsClient(AsyncBaseClient):
    """Client for contractor endpoints."""

    _BASE_PATH = "/common/contractors"

    async def browse(self, page: int = 1, per_page: int = 12) -> list[Contractor]:
        """Browse contractor listings one page at a time."""
        envelope = await self._get(
            self._BASE_PATH,
            params={"page": page, "perPage": per_page},
        )
        return [Contractor.model_validate(c) for c in envelope.items("contractors")]

    async def latest_rated(self) -> list[Contractor]:
        """List recently rated contractors for the home page."""
        envelope = await self._get(f"{self._BASE_PATH}/latest-rated")
        return [Contractor.model_validate(c) for c in envelope.items("contractors")]

    async def get(self, contractor_id: int) -> Contractor:
        """Fetch one contractor."""
        envelope = await self._get(f"{self._BASE_PATH}/{contractor_id}")
        data = envelope.data
        if isinstance(data, dict) and isinstance(data.get("contractor"), dict):
            data = data["contractor"]
        return Contractor.model_validate(data)

    async def my_saved(self) -> list[Contractor]:
        """List saved contractors; each is marked ``is_saved``."""
        envelope = await self._get(f"{self._BASE_PATH}/my-saved")
        return [
            Contractor.model_validate({**c, "is_saved": True})
            for c in envelope.items("contractors")
        ]

    async def save(self, contractor_id: int) -> None:
        """Add a contractor to the saved list."""
        await self._post(f"{self._BASE_PATH}/save", data={"contractor_id": contractor_id})

    async def unsave(self, contractor_id: int) -> None:
        """Remove a contractor from the saved list."""
        await self._post(f"{self._BASE_PATH}/unsave", data={"contractor_id": contractor_id})
