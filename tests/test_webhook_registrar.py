import pytest
from sqlalchemy import select

from pulse.v1.core.exceptions import (
    ConflictAlreadySatisfied,
    ResourceForbidden,
    ResourceNotFound,
    TransientExternalError,
)
from pulse.v1.webhooks.client import Hook
from pulse.v1.webhooks.models import WebhookRegistration
from pulse.v1.webhooks.registrar import (
    EnsureResult,
    WebhookRegistrar,
    WebhookSync,
    is_stale,
    provider_domain,
)
from pulse.v1.webhooks.tunnel import PublicEndpoint

DESIRED = "https://abc123.ngrok-free.app/webhooks/github"


class FakeHookClient:
    """In-memory hook store with optional per-resource failures."""

    def __init__(self, repositories=None):
        self.repositories = repositories or ["alice/app"]
        self.hooks: dict[str, list[Hook]] = {}
        self.errors: dict[str, Exception] = {}
        self.create_errors: dict[str, Exception] = {}
        self.delete_errors: dict[str, Exception] = {}
        self.created: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []
        self._next_id = 1

    async def list_repositories(self):
        return list(self.repositories)

    async def list_hooks(self, resource_id):
        if resource_id in self.errors:
            raise self.errors[resource_id]
        return list(self.hooks.get(resource_id, []))

    async def create_hook(self, resource_id, url):
        if resource_id in self.create_errors:
            raise self.create_errors[resource_id]
        hook = Hook(id=str(self._next_id), url=url)
        self._next_id += 1
        self.hooks.setdefault(resource_id, []).append(hook)
        self.created.append((resource_id, url))
        return hook

    async def delete_hook(self, resource_id, hook_id):
        if resource_id in self.delete_errors:
            raise self.delete_errors[resource_id]
        self.hooks[resource_id] = [
            h for h in self.hooks.get(resource_id, []) if h.id != hook_id
        ]
        self.deleted.append((resource_id, hook_id))


class StaticEndpoint(PublicEndpoint):
    def __init__(self, url):
        super().__init__()
        self.url = url

    async def resolve(self):
        return self.url


@pytest.fixture
def hook_client() -> FakeHookClient:
    return FakeHookClient()


@pytest.fixture
def registrar(hook_client, session_factory, clock) -> WebhookRegistrar:
    return WebhookRegistrar(hook_client, session_factory, clock)


def test_provider_domain():
    assert provider_domain("https://abc.ngrok-free.app/x") == "ngrok-free.app"
    assert provider_domain("not a url") == ""


def test_is_stale():
    assert is_stale("https://old.ngrok-free.app/webhooks/github", DESIRED)
    assert not is_stale("https://other.example.com/webhooks/github", DESIRED)
    assert not is_stale("https://jenkins.corp.internal/webhooks/github", DESIRED)
    assert not is_stale("https://old.ngrok-free.app/hooks/ci", DESIRED)
    assert not is_stale("https://ci.example.com/hooks/build", DESIRED)
    assert not is_stale(DESIRED, DESIRED)


class TestEnsure:
    """Idempotent hook registration"""

    async def test_ensure_twice_creates_once(self, registrar, hook_client):
        assert await registrar.ensure("alice/app", DESIRED) == EnsureResult.CREATED
        assert await registrar.ensure("alice/app", DESIRED) == EnsureResult.CACHED

        assert hook_client.created == [("alice/app", DESIRED)]
        assert registrar.registration("alice/app") == DESIRED

    async def test_registration_is_persisted(self, registrar, session_factory, clock):
        await registrar.ensure("alice/app", DESIRED)

        async with session_factory() as session:
            row = (
                await session.execute(
                    select(WebhookRegistration).where(
                        WebhookRegistration.resource_id == "alice/app"
                    )
                )
            ).scalar_one()
        assert row.callback_url == DESIRED
        assert row.hook_id == "1"
        assert row.registered_at == clock.now()

    async def test_existing_exact_hook_is_adopted(self, registrar, hook_client):
        hook_client.hooks["alice/app"] = [Hook(id="77", url=DESIRED)]

        assert await registrar.ensure("alice/app", DESIRED) == EnsureResult.ADOPTED
        assert hook_client.created == []
        assert registrar.registration("alice/app") == DESIRED

    async def test_stale_hooks_are_replaced(self, registrar, hook_client):
        hook_client.hooks["alice/app"] = [
            Hook(id="10", url="https://old.ngrok-free.app/webhooks/github"),
            Hook(id="11", url="https://ci.example.com/hooks/build"),
        ]

        assert await registrar.ensure("alice/app", DESIRED) == EnsureResult.REPLACED

        assert hook_client.deleted == [("alice/app", "10")]
        urls = {h.url for h in hook_client.hooks["alice/app"]}
        assert urls == {"https://ci.example.com/hooks/build", DESIRED}

    async def test_other_services_hooks_are_kept(self, registrar, hook_client):
        jenkins = Hook(id="9", url="https://jenkins.corp.internal/webhooks/github")
        hook_client.hooks["alice/app"] = [jenkins]

        assert await registrar.ensure("alice/app", DESIRED) == EnsureResult.CREATED

        assert hook_client.deleted == []
        assert jenkins in hook_client.hooks["alice/app"]

    async def test_stale_hook_already_deleted_is_ignored(self, registrar, hook_client):
        hook_client.hooks["alice/app"] = [
            Hook(id="10", url="https://old.ngrok-free.app/webhooks/github")
        ]
        hook_client.delete_errors["alice/app"] = ResourceNotFound("Hook not found")

        assert await registrar.ensure("alice/app", DESIRED) == EnsureResult.REPLACED
        assert hook_client.created == [("alice/app", DESIRED)]
        assert registrar.registration("alice/app") == DESIRED

    async def test_conflict_outside_create_is_not_success(self, registrar, hook_client):
        hook_client.errors["alice/app"] = ConflictAlreadySatisfied("Unprocessable")

        with pytest.raises(ConflictAlreadySatisfied):
            await registrar.ensure("alice/app", DESIRED)
        assert registrar.registration("alice/app") is None

    async def test_conflict_counts_as_registered(self, registrar, hook_client):
        hook_client.create_errors["alice/app"] = ConflictAlreadySatisfied("Hook exists")

        result = await registrar.ensure("alice/app", DESIRED)

        assert result == EnsureResult.ALREADY_SATISFIED
        assert registrar.registration("alice/app") == DESIRED

    @pytest.mark.parametrize(
        "error", [ResourceNotFound("gone"), ResourceForbidden("no admin rights")]
    )
    async def test_inaccessible_resource_is_skipped(self, registrar, hook_client, error):
        hook_client.errors["alice/app"] = error

        assert await registrar.ensure("alice/app", DESIRED) == EnsureResult.SKIPPED
        assert registrar.registration("alice/app") is None

    async def test_transient_error_propagates(self, registrar, hook_client):
        hook_client.errors["alice/app"] = TransientExternalError("GitHub API error 502")

        with pytest.raises(TransientExternalError):
            await registrar.ensure("alice/app", DESIRED)
        assert registrar.registration("alice/app") is None

    async def test_endpoint_change_starts_new_generation(self, registrar, hook_client):
        registrar.observe_endpoint("https://abc123.ngrok-free.app")
        await registrar.ensure("alice/app", DESIRED)

        assert registrar.observe_endpoint("https://abc123.ngrok-free.app") is False
        assert registrar.observe_endpoint("https://zzz999.ngrok-free.app") is True
        assert registrar.registrations == {}

        new_url = "https://zzz999.ngrok-free.app/webhooks/github"
        assert await registrar.ensure("alice/app", new_url) == EnsureResult.REPLACED
        assert [h.url for h in hook_client.hooks["alice/app"]] == [new_url]


class TestWebhookSync:
    """Repository loop body"""

    async def test_sync_skips_without_endpoint(self, registrar, hook_client):
        sync = WebhookSync(registrar, StaticEndpoint(None))

        assert await sync.tick() == {}
        assert hook_client.created == []

    async def test_sync_ensures_every_repository(self, registrar):
        registrar.client.repositories = ["alice/app", "alice/site", "alice/private"]
        registrar.client.errors["alice/private"] = ResourceForbidden("no admin")
        sync = WebhookSync(
            registrar, StaticEndpoint("https://abc123.ngrok-free.app"), "webhooks/github"
        )

        results = await sync.tick()

        assert results == {
            "alice/app": EnsureResult.CREATED,
            "alice/site": EnsureResult.CREATED,
            "alice/private": EnsureResult.SKIPPED,
        }
        assert registrar.registration("alice/site") == DESIRED

        again = await sync.tick()
        assert again["alice/app"] == EnsureResult.CACHED
