"""Projects sub-client.

This module provides ProjectsClient for browsing, posting and saving
projects (/common/projects/*).

This is an internal module. Import from `ezclient` instead.
"""

from typing import Any

from ezclient._base import AsyncBaseClient, require
from ezclient.models import Project


class ProjectsClient(AsyncBaseClient):
    """Client for project endpoints.

    Example:
        projects = await client.projects.browse(search="roofing", page=1)
        await client.projects.save(projects[0].id)
    """

    _BASE_PATH = "/common/projects"

    async def browse(
        self,
        search: str | None = None,
        zip: str | None = None,
        specialization_id: int | None = None,
        page: int | None = None,
        per_page: int | None = None,
        limit: int | None = None,
    ) -> list[Project]:
        """Browse open projects.

        Args:
            search: Free-text filter.
            zip: ZIP code filter.
            specialization_id: Trade filter.
            page: Page number.
            per_page: Page size.
            limit: Maximum results (used by the home page teaser).

        Returns:
            The projects on the requested page.
        """
        envelope = await self._get(
            self._BASE_PATH,
            params={
                "search": search,
                "zip": zip,
                "specialization_id": specialization_id,
                "page": page,
                "perPage": per_page,
                "limit": limit,
            },
        )
        return [Project.model_validate(p) for p in envelope.items("projects")]

    async def my_projects(self, page: int = 1, per_page: int = 100) -> list[Project]:
        """List projects posted by the caller."""
        envelope = await self._get(
            f"{self._BASE_PATH}/my-projects",
            params={"perPage": per_page, "page": page},
        )
        return [Project.model_validate(p) for p in envelope.items("projects")]

    async def my_saved(self) -> list[Project]:
        """List the projects the caller has saved.

        Every returned project is marked ``is_saved``.
        """
        envelope = await self._get(f"{self._BASE_PATH}/my-saved")
        return [
            Project.model_validate({**p, "is_saved": True})
            for p in envelope.items("projects")
        ]

    async def get(self, project_id: int) -> Project:
        """Fetch one project."""
        envelope = await self._get(f"{self._BASE_PATH}/{project_id}")
        data = envelope.data
        if isinstance(data, dict) and isinstance(data.get("project"), dict):
            data = data["project"]
        return Project.model_validate(data)

    async def create(self, title: str, description: str, **fields: Any) -> Project:
        """Post a new project.

        Raises:
            ValidationError: If title or description is blank.
        """
        require(title, "title")
        require(description, "description")
        envelope = await self._post(
            f"{self._BASE_PATH}/create",
            data={"title": title, "description": description, **fields},
        )
        return Project.model_validate(envelope.data)

    async def update(self, project_id: int, **fields: Any) -> Project:
        """Update a posted project and return the stored record."""
        envelope = await self._post(f"{self._BASE_PATH}/{project_id}/update", data=fields)
        return Project.model_validate(envelope.data)

    async def delete(self, project_id: int) -> None:
        """Delete a posted project."""
        await self._delete(f"{self._BASE_PATH}/delete/{project_id}")

    async def save(self, project_id: int) -> None:
        """Add a project to the caller's saved list."""
        await self._post(f"{self._BASE_PATH}/save", data={"project_id": project_id})

    async def unsave(self, project_id: int) -> None:
        """Remove a project from the caller's saved list."""
        await self._post(f"{self._BASE_PATH}/unsave", data={"project_id": project_id})
