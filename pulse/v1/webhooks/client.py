"""
GitHub repository hook client.

HTTP status codes are mapped onto the engine's error taxonomy so the
registrar can decide what is fatal to a resource and what is not.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from pulse.v1.core.exceptions import (
    ConflictAlreadySatisfied,
    ResourceForbidden,
    ResourceNotFound,
    TransientExternalError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Hook:
    id: str
    url: str


class GitHubHookClient:
    """Async client for the repository hooks API."""

    def __init__(
        self,
        base_url: str = "https://api.github.com",
        token: str | None = None,
        events: list[str] | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.events = events or ["push", "issues"]
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def list_repositories(self, limit: int = 50) -> list[str]:
        """Full names of the repositories the token's owner owns."""
        data = await self._request(
            "GET",
            "/user/repos",
            params={"affiliation": "owner", "per_page": limit},
        )
        return [repo["full_name"] for repo in data or []]

    async def list_hooks(self, resource_id: str) -> list[Hook]:
        data = await self._request("GET", f"/repos/{resource_id}/hooks")
        return [
            Hook(id=str(hook["id"]), url=(hook.get("config") or {}).get("url", ""))
            for hook in data or []
        ]

    async def create_hook(self, resource_id: str, url: str) -> Hook:
        payload = {
            "name": "web",
            "active": True,
            "events": self.events,
            "config": {"url": url, "content_type": "json", "insecure_ssl": "0"},
        }
        data = await self._request("POST", f"/repos/{resource_id}/hooks", json=payload)
        return Hook(id=str(data["id"]), url=url)

    async def delete_hook(self, resource_id: str, hook_id: str) -> None:
        await self._request("DELETE", f"/repos/{resource_id}/hooks/{hook_id}")

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise TransientExternalError(
                f"GitHub request failed: {e}", details={"path": path}
            ) from e

        if response.status_code == 404:
            raise ResourceNotFound(f"Not found: {path}", details={"path": path})
        if response.status_code == 403:
            raise ResourceForbidden(f"Forbidden: {path}", details={"path": path})
        if response.status_code == 422:
            raise ConflictAlreadySatisfied(
                f"Already exists: {path}",
                details={"path": path, "response": response.text[:500]},
            )
        if response.status_code >= 400:
            raise TransientExternalError(
                f"GitHub API error {response.status_code}",
                details={"path": path, "status_code": response.status_code},
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()
