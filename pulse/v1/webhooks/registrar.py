"""
Webhook registrar: keeps exactly one hook per resource pointing at us.

``ensure`` is idempotent. Within one endpoint generation a resource already
known to point at the desired URL costs nothing; otherwise the external
system is consulted, stale hooks left behind by an old endpoint are removed,
and a fresh hook is created.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Protocol
from urllib.parse import urlsplit

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pulse.v1.core.clock import Clock, SystemClock
from pulse.v1.core.exceptions import (
    ConflictAlreadySatisfied,
    ResourceForbidden,
    ResourceNotFound,
)
from pulse.v1.webhooks.client import Hook
from pulse.v1.webhooks.models import WebhookRegistration
from pulse.v1.webhooks.tunnel import PublicEndpoint

logger = logging.getLogger(__name__)


class HookClient(Protocol):
    async def list_repositories(self) -> list[str]: ...

    async def list_hooks(self, resource_id: str) -> list[Hook]: ...

    async def create_hook(self, resource_id: str, url: str) -> Hook: ...

    async def delete_hook(self, resource_id: str, hook_id: str) -> None: ...


class EnsureResult(str, Enum):
    CACHED = "cached"
    ADOPTED = "adopted"
    CREATED = "created"
    REPLACED = "replaced"
    ALREADY_SATISFIED = "already_satisfied"
    SKIPPED = "skipped"


def provider_domain(url: str) -> str:
    """Last two labels of the URL's host, e.g. ``ngrok-free.app``."""
    host = urlsplit(url).hostname or ""
    return ".".join(host.split(".")[-2:])


def is_stale(hook_url: str, desired_url: str) -> bool:
    """
    A hook from an earlier endpoint generation of this process.

    Only hooks on the same provider domain and with the same callback path
    qualify; hooks of other services on the resource are never touched.
    """
    if not hook_url or hook_url == desired_url:
        return False
    same_path = urlsplit(hook_url).path.rstrip("/") == urlsplit(desired_url).path.rstrip("/")
    return same_path and provider_domain(hook_url) == provider_domain(desired_url)


class WebhookRegistrar:
    def __init__(
        self,
        client: HookClient,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        clock: Clock | None = None,
    ):
        self.client = client
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.endpoint: str | None = None
        self.generation = 0
        self._registered: dict[str, str] = {}

    def registration(self, resource_id: str) -> str | None:
        """URL recorded for ``resource_id`` in the current generation."""
        return self._registered.get(resource_id)

    @property
    def registrations(self) -> dict[str, str]:
        return dict(self._registered)

    def observe_endpoint(self, endpoint: str) -> bool:
        """
        Record the current public endpoint.

        Returns:
            True when the endpoint changed, which starts a new generation and
            forgets every in-memory registration.
        """
        if endpoint == self.endpoint:
            return False

        if self.endpoint is not None:
            logger.info(
                "Public endpoint changed, re-registering webhooks",
                extra={"old_endpoint": self.endpoint, "new_endpoint": endpoint},
            )
        self.endpoint = endpoint
        self.generation += 1
        self._registered.clear()
        return True

    async def ensure(self, resource_id: str, desired_url: str) -> EnsureResult:
        """
        Make ``resource_id`` carry exactly one hook pointing at ``desired_url``.

        Raises:
            TransientExternalError: the external system failed; retry next tick
        """
        if self._registered.get(resource_id) == desired_url:
            return EnsureResult.CACHED

        try:
            hooks = await self.client.list_hooks(resource_id)
        except (ResourceNotFound, ResourceForbidden) as e:
            return self._skip(resource_id, e)

        for hook in hooks:
            if hook.url == desired_url:
                await self._record(resource_id, desired_url, hook.id)
                return EnsureResult.ADOPTED

        stale = [hook for hook in hooks if is_stale(hook.url, desired_url)]
        for hook in stale:
            try:
                await self.client.delete_hook(resource_id, hook.id)
            except ResourceNotFound:
                # already removed by someone else
                continue
            except ResourceForbidden as e:
                return self._skip(resource_id, e)
            logger.info(
                "Deleted stale webhook",
                extra={"resource_id": resource_id, "stale_url": hook.url},
            )

        try:
            created = await self.client.create_hook(resource_id, desired_url)
        except ConflictAlreadySatisfied:
            await self._record(resource_id, desired_url, None)
            return EnsureResult.ALREADY_SATISFIED
        except (ResourceNotFound, ResourceForbidden) as e:
            return self._skip(resource_id, e)

        await self._record(resource_id, desired_url, created.id)
        logger.info(
            "Registered webhook",
            extra={"resource_id": resource_id, "url": desired_url},
        )
        return EnsureResult.REPLACED if stale else EnsureResult.CREATED

    def _skip(
        self, resource_id: str, error: ResourceNotFound | ResourceForbidden
    ) -> EnsureResult:
        logger.warning(
            "Skipping webhook registration",
            extra={"resource_id": resource_id, "reason": error.message},
        )
        return EnsureResult.SKIPPED

    async def _record(
        self, resource_id: str, callback_url: str, hook_id: str | None
    ) -> None:
        self._registered[resource_id] = callback_url
        if self.session_factory is None:
            return

        async with self.session_factory() as session:
            await session.merge(
                WebhookRegistration(
                    resource_id=resource_id,
                    callback_url=callback_url,
                    hook_id=hook_id,
                    registered_at=self.clock.now(),
                )
            )
            await session.commit()


class WebhookSync:
    """Loop body: ensure our hook on every repository of the account."""

    def __init__(
        self,
        registrar: WebhookRegistrar,
        endpoint: PublicEndpoint,
        webhook_path: str = "/webhooks/github",
    ):
        self.registrar = registrar
        self.endpoint = endpoint
        self.webhook_path = "/" + webhook_path.lstrip("/")

    async def tick(self, now: datetime | None = None) -> dict[str, EnsureResult]:
        public_url = await self.endpoint.resolve()
        if not public_url:
            logger.info("Public endpoint not ready, skipping webhook registration")
            return {}

        self.registrar.observe_endpoint(public_url)
        desired_url = f"{public_url}{self.webhook_path}"

        results = {}
        for resource_id in await self.registrar.client.list_repositories():
            results[resource_id] = await self.registrar.ensure(resource_id, desired_url)
        return results
