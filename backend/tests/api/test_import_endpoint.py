"""One-click import endpoint tests.

The n8n API is an httpx.MockTransport recording every request it receives.
"""

import json

import httpx
import pytest
from httpx import AsyncClient

from gallery.api.deps import get_import_forwarder
from gallery.core.config import UpstreamSettings
from gallery.main import app
from gallery.services.import_forwarder import ImportForwarder


class FakeN8n:
    def __init__(self, status: int = 200, body: object = None):
        self.status = status
        self.body = {"id": "wf-1", "name": "Slack Alerts"} if body is None else body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.body, str):
            return httpx.Response(self.status, text=self.body)
        return httpx.Response(self.status, json=self.body)


def _upstream(**overrides) -> UpstreamSettings:
    values = {
        "n8n_workflows_endpoint": None,
        "n8n_api_base": None,
        "n8n_api_url": None,
        "n8n_api_key": None,
        "n8n_bearer_token": None,
        "n8n_basic_auth_user": None,
        "n8n_basic_auth_password": None,
    }
    values.update(overrides)
    return UpstreamSettings(**values)


@pytest.fixture
async def install_forwarder(catalog):
    clients: list[httpx.AsyncClient] = []

    def install(n8n: FakeN8n, **config) -> None:
        http = httpx.AsyncClient(transport=httpx.MockTransport(n8n))
        clients.append(http)
        forwarder = ImportForwarder(
            client=http,
            config=_upstream(**config),
            catalog_factory=lambda: catalog,
        )
        app.dependency_overrides[get_import_forwarder] = lambda: forwarder

    yield install

    for http in clients:
        await http.aclose()


async def test_import_by_template_id(client: AsyncClient, install_forwarder):
    n8n = FakeN8n()
    install_forwarder(n8n, n8n_api_base="https://n8n.test")

    response = await client.post(
        "/api/import-workflow",
        json={"templateId": "slack-alerts"},
        headers={"X-N8N-API-KEY": "k-123"},
    )

    assert response.status_code == 201
    assert response.json() == {
        "id": "wf-1",
        "raw": {"id": "wf-1", "name": "Slack Alerts"},
        "endpoint": "https://n8n.test/api/v1/workflows",
    }
    sent = n8n.requests[0]
    assert sent.headers["X-N8N-API-KEY"] == "k-123"
    payload = json.loads(sent.content)
    assert payload["name"] == "Slack Alerts"
    assert payload["settings"] == {}
    assert payload["nodes"][0]["name"] == "Webhook"


async def test_inline_workflow_with_body_key(client: AsyncClient, install_forwarder):
    n8n = FakeN8n(body={"data": {"id": 17}})
    install_forwarder(n8n)

    response = await client.post(
        "/api/import-workflow",
        json={
            "workflow": {"nodes": [], "connections": {}},
            "name": "Mine",
            "apiKey": "body-key",
            "apiBase": "https://x.test/rest/",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["id"] == 17
    assert data["endpoint"] == "https://x.test/rest/workflows"
    assert json.loads(n8n.requests[0].content)["name"] == "Mine"


async def test_missing_credentials_never_calls_upstream(
    client: AsyncClient, install_forwarder
):
    n8n = FakeN8n()
    install_forwarder(n8n, n8n_api_base="https://n8n.test")

    response = await client.post(
        "/api/import-workflow", json={"templateId": "slack-alerts"}
    )

    assert response.status_code == 400
    assert "X-N8N-API-KEY" in response.json()["message"]
    assert n8n.requests == []


async def test_missing_endpoint_is_400(client: AsyncClient, install_forwarder):
    n8n = FakeN8n()
    install_forwarder(n8n, n8n_api_key="server-key")

    response = await client.post(
        "/api/import-workflow", json={"templateId": "slack-alerts"}
    )

    assert response.status_code == 400
    assert "N8N_API_BASE" in response.json()["message"]
    assert n8n.requests == []


async def test_unknown_template_is_400(client: AsyncClient, install_forwarder):
    n8n = FakeN8n()
    install_forwarder(n8n, n8n_api_key="server-key", n8n_api_base="https://n8n.test")

    response = await client.post("/api/import-workflow", json={"templateId": "nope"})

    assert response.status_code == 400
    assert "templateId" in response.json()["message"]
    assert n8n.requests == []


async def test_upstream_status_is_relayed(client: AsyncClient, install_forwarder):
    n8n = FakeN8n(status=401, body="unauthorized")
    install_forwarder(n8n, n8n_api_key="bad-key", n8n_api_base="https://n8n.test")

    response = await client.post(
        "/api/import-workflow", json={"templateId": "slack-alerts"}
    )

    assert response.status_code == 401
    assert response.json()["message"] == "unauthorized"
