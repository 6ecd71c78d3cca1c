"""
MetaKube API client - CRUD calls for projects.

Every failure is translated into one of two errors: NotFoundError for HTTP 404
and ExternalAPIError for anything else (other HTTP errors, transport errors,
timeouts, unparseable responses). Task cancellation is never translated.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp
from pydantic import ValidationError

from errors import ExternalAPIError, NotFoundError
from plugins.metakube.models import Project, ProjectCreateBody

logger = logging.getLogger(__name__)

PROJECTS_PATH = "/api/v1/projects"


def _error_message(text: str) -> str:
    """Extract the message from a MetaKube error body, if there is one."""
    try:
        body = json.loads(text)
    except ValueError:
        return text.strip()

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    return text.strip()


class MetaKubeClient:
    """
    Thin async client for the MetaKube projects API.

    The aiohttp session is supplied by the caller and may be shared by many
    clients; the client never closes it.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        endpoint: str,
        token: str,
        timeout: float = 30.0,
    ):
        self.session = session
        self.endpoint = endpoint.rstrip("/")
        self._token = token
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for MetaKube API requests."""
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self, method: str, path: str, body: Optional[Dict[str, Any]] = None
    ) -> Optional[Any]:
        url = f"{self.endpoint}{path}"
        try:
            async with self.session.request(
                method,
                url,
                headers=self._get_headers(),
                json=body,
                timeout=self.timeout,
            ) as response:
                raw = await response.read()
                charset = response.charset or "utf-8"

                if response.status == 404:
                    raise NotFoundError(f"{method} {path}: not found", status=404)
                if response.status >= 400:
                    raise ExternalAPIError(
                        f"{method} {path} returned HTTP {response.status}: "
                        f"{_error_message(raw.decode('utf-8', errors='replace'))}",
                        status=response.status,
                    )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExternalAPIError(f"{method} {path} failed: {e!r}") from e

        logger.debug(f"{method} {url} -> {response.status}")

        try:
            text = raw.decode(charset)
        except (UnicodeDecodeError, LookupError) as e:
            raise ExternalAPIError(
                f"{method} {path} returned a body that is not valid {charset}: {e}",
                status=response.status,
            ) from e

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise ExternalAPIError(
                f"{method} {path} returned invalid JSON: {e}",
                status=response.status,
            ) from e

    def _parse_project(self, data: Any, method: str, path: str) -> Project:
        if not isinstance(data, dict):
            raise ExternalAPIError(f"{method} {path} returned no project")
        try:
            return Project.model_validate(data)
        except ValidationError as e:
            raise ExternalAPIError(
                f"{method} {path} returned a malformed project: {e}"
            ) from e

    async def get_project(self, project_id: str) -> Project:
        """
        Get a project by ID.

        Raises:
            NotFoundError: If the project does not exist.
            ExternalAPIError: On any other failure.
        """
        path = f"{PROJECTS_PATH}/{project_id}"
        data = await self._request("GET", path)
        return self._parse_project(data, "GET", path)

    async def create_project(self, body: ProjectCreateBody) -> Project:
        """Create a project and return it as created by MetaKube."""
        data = await self._request("POST", PROJECTS_PATH, body.to_body())
        return self._parse_project(data, "POST", PROJECTS_PATH)

    async def update_project(self, project_id: str, project: Project) -> None:
        """Replace the mutable fields of a project."""
        await self._request("PUT", f"{PROJECTS_PATH}/{project_id}", project.to_body())

    async def delete_project(self, project_id: str) -> None:
        """Delete a project."""
        await self._request("DELETE", f"{PROJECTS_PATH}/{project_id}")
