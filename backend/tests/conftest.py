"""Shared test fixtures.

Object storage and the n8n API are faked in-process.
Tests never require S3, STS or a running n8n instance.
"""

import asyncio
import json

import pytest
from httpx import ASGITransport, AsyncClient

from gallery.api.deps import get_import_forwarder, get_template_catalog
from gallery.core.errors import NotFound
from gallery.main import app
from gallery.services.template_cache import TemplateCache
from gallery.services.template_catalog import TemplateCatalog


class InMemoryStore:
    """ObjectStoreClient backed by a dict, recording every call."""

    def __init__(self, objects: dict[str, str] | None = None, backend: str = "s3"):
        self.objects = dict(objects or {})
        self.backend = backend
        self.calls: list[tuple[str, str]] = []
        self.get_delay = 0.0

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    async def list_keys(self, bucket: str, prefix: str) -> list[str]:
        self.calls.append(("list", prefix))
        await asyncio.sleep(0)
        return sorted(
            key for key in self.objects if key.startswith(prefix) and key.endswith(".json")
        )

    async def get_object(self, bucket: str, key: str) -> str:
        self.calls.append(("get", key))
        await asyncio.sleep(self.get_delay)
        if key not in self.objects:
            raise NotFound(f"No such object: {key}")
        return self.objects[key]

    async def put_object(self, bucket: str, key: str, text: str, content_type: str) -> None:
        self.calls.append(("put", key))
        await asyncio.sleep(0)
        self.objects[key] = text


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_template(**overrides) -> dict:
    template = {
        "id": "slack-alerts",
        "name": "Slack Alerts",
        "description": "Post a Slack message when a webhook fires.",
        "difficulty": "Beginner",
        "tags": ["slack", "webhook"],
        "nodes": [{"name": "Webhook", "type": "n8n-nodes-base.webhook"}],
        "connections": {"Webhook": {"main": [[{"node": "Slack", "type": "main", "index": 0}]]}},
    }
    template.update(overrides)
    return template


@pytest.fixture
def template_factory():
    return make_template


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(fake_clock) -> TemplateCache:
    return TemplateCache(clock=fake_clock)


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore(
        {
            "templates/slack-alerts.json": json.dumps(make_template()),
            "templates/sheets-sync.json": json.dumps(
                make_template(
                    id="sheets-sync",
                    name="Sheets Sync",
                    difficulty="Intermediate",
                    estimatedSetupMinutes="15",
                )
            ),
        }
    )


@pytest.fixture
def store_factory():
    return InMemoryStore


@pytest.fixture
def catalog(memory_store, cache) -> TemplateCatalog:
    return TemplateCatalog(
        store=memory_store,
        cache=cache,
        bucket="gallery-bucket",
        prefix="templates/",
        cache_ttl=60,
        concurrency=2,
    )


@pytest.fixture
async def client(catalog) -> AsyncClient:
    """httpx AsyncClient wired to the app, with the catalog pointed at memory_store."""
    app.dependency_overrides[get_template_catalog] = lambda: catalog

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.pop(get_template_catalog, None)
    app.dependency_overrides.pop(get_import_forwarder, None)
