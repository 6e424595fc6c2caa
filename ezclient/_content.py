"""Content sub-client: reference data, blogs, FAQs, static pages and notifications.

This is an internal module. Import from `ezclient` instead.
"""

from ezclient._base import AsyncBaseClient
from ezclient.models import Blog, Faq, HowItWorks, Notification, Page, Specialization


class ContentClient(AsyncBaseClient):
    """Client for public content and the caller's notifications."""

    async def latest_blogs(self, audience: str | None = None) -> list[Blog]:
        envelope = await self._get("/data/blogs/latest", params={"type": audience}, auth=False)
        return [Blog.model_validate(b) for b in envelope.items("blogs")]

    async def featured_blogs(self) -> list[Blog]:
        envelope = await self._get("/data/blogs/featured", auth=False)
        return [Blog.model_validate(b) for b in envelope.items("blogs")]

    async def blog(self, slug: str) -> Blog:
        envelope = await self._get(f"/data/blogs/detail/{slug}", auth=False)
        data = envelope.data
        if isinstance(data, dict) and isinstance(data.get("blog"), dict):
            data = data["blog"]
        return Blog.model_validate(data)

    async def faqs(self, audience: str | None = None) -> list[Faq]:
        envelope = await self._get("/data/faqs", params={"type": audience}, auth=False)
        return [Faq.model_validate(f) for f in envelope.items("faqs")]

    async def page(self, slug: str) -> Page:
        """Fetch a static page such as ``terms-conditions``."""
        envelope = await self._get(f"/data/pages/{slug}", auth=False)
        data = envelope.data if isinstance(envelope.data, dict) else {}
        return Page.model_validate({"slug": slug, **data})

    async def notifications(self) -> list[Notification]:
        envelope = await self._get("/common/notifications")
        return [Notification.model_validate(n) for n in envelope.items("notifications")]

    async def specializations(self) -> list[Specialization]:
        """List the trade categories offered by project and signup forms."""
        envelope = await self._get("/data/specializations", auth=False)
        return [Specialization.model_validate(s) for s in envelope.items("specializations")]

    async def how_it_works(self, audience: str) -> HowItWorks | None:
        """Fetch the landing-page block for ``audience`` (a role name).

        Returns:
            The first block the backend returns, or None when it has none.
        """
        envelope = await self._get("/data/how-it-works", params={"type": audience}, auth=False)
        blocks = envelope.items()
        if not blocks:
            return None
        return HowItWorks.model_validate(blocks[0])
