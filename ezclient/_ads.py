"""Affiliate ads sub-client.

This module provides AdsClient for ad placements, the caller's own ads
and ad transactions (/affiliate/ads/*, /affiliate/ad-placements, ...).

This is an internal module. Import from `ezclient` instead.
"""

from datetime import date, timedelta
from typing import Any, Literal

from ezclient._base import AsyncBaseClient, require
from ezclient.models import Ad, AdPlacement, AdTransaction

Orientation = Literal["horizontal", "vertical"]


def normalize_url(url: str) -> str:
    """Prefix a bare domain with https:// the way the ad form does."""
    url = url.strip()
    if url and not url.startswith(("http://", "https://")):
        return f"https://{url}"
    return url


class AdsClient(AsyncBaseClient):
    """Client for affiliate ad endpoints."""

    _BASE_PATH = "/affiliate/ads"

    async def public(self, orientation: Orientation) -> list[Ad]:
        """List live ads of one orientation for display."""
        envelope = await self._get(self._BASE_PATH, params={"type": orientation})
        return [Ad.model_validate(a) for a in envelope.items("ads")]

    async def my_ads(self) -> list[Ad]:
        """List the caller's ads."""
        envelope = await self._get(f"{self._BASE_PATH}/my-ads")
        return [Ad.model_validate(a) for a in envelope.items("ads")]

    async def placements(self, orientation: Orientation) -> list[AdPlacement]:
        """List purchasable placements of one orientation."""
        envelope = await self._get(
            "/affiliate/ad-placements", params={"orientation": orientation}
        )
        return [AdPlacement.model_validate(p) for p in envelope.items("placements")]

    async def transactions(self) -> list[AdTransaction]:
        """List charges for the caller's ads."""
        envelope = await self._get("/affiliate/ad-transactions")
        return [AdTransaction.model_validate(t) for t in envelope.items("transactions")]

    async def create(
        self,
        ad_placement_id: int,
        orientation: Orientation,
        card_id: str,
        description: str = "",
        target_url: str | None = None,
        image: Any = None,
        duration_days: int = 30,
        start: date | None = None,
    ) -> Ad:
        """Buy a placement and create an ad.

        Args:
            ad_placement_id: Placement to buy.
            orientation: "horizontal" or "vertical".
            card_id: Card to charge; normally the default card.
            description: Ad text.
            target_url: Click-through URL; a bare domain gets https://.
            image: Image file object or an existing image URL.
            duration_days: Run length starting at ``start``.
            start: First day; defaults to today.

        Returns:
            The created ad.

        Raises:
            ValidationError: If no card or placement is given.
        """
        require(card_id, "card_id", "Please add a default card before posting an ad")
        require(ad_placement_id, "ad_placement_id", "Please select an ad placement")

        start = start or date.today()
        data: dict[str, Any] = {
            "ad_placement_id": ad_placement_id,
            "orientation": orientation,
            "can_pause": False,
            "card_id": card_id,
            "description": description,
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=duration_days)).isoformat(),
        }
        if target_url:
            data[f"{orientation}_url"] = normalize_url(target_url)

        files = None
        if isinstance(image, str):
            data[f"{orientation}_image_url"] = image
        elif image is not None:
            files = [(f"{orientation}_image", image)]

        envelope = await self._post(f"{self._BASE_PATH}/create", data=data, files=files)
        return Ad.model_validate(envelope.data)

    async def update(self, ad_id: int, **fields: Any) -> Ad:
        """Update an ad and return the stored record."""
        envelope = await self._post(f"{self._BASE_PATH}/{ad_id}/update", data=fields)
        return Ad.model_validate(envelope.data)

    async def delete(self, ad_id: int) -> None:
        """Delete an ad."""
        await self._delete(f"{self._BASE_PATH}/{ad_id}")
