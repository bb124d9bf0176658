"""Import Forwarder: relays a template to the n8n workflow-creation API.

Resolution order for every request:
1. the template (inline ``workflow`` or ``templateId`` via the catalog)
2. credentials (request header/body API key, then server config)
3. the workflows endpoint

Nothing is sent upstream unless all three resolve.
"""

import base64
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit, urlunsplit

import httpx
import structlog

from gallery.core.config import UpstreamSettings
from gallery.core.errors import (
    AuthConfigError,
    AuthUpstreamError,
    EndpointConfigError,
    NotFound,
    TemplateResolutionError,
    TransportError,
    ValidationError,
)
from gallery.core.metrics import workflow_imports_total
from gallery.services.template_catalog import TemplateCatalog

logger = structlog.stdlib.get_logger(__name__)

API_KEY_HEADER = "X-N8N-API-KEY"
DEFAULT_WORKFLOW_NAME = "Imported from template gallery"
MODERN_WORKFLOWS_PATH = "/api/v1/workflows"


@dataclass
class ImportResult:
    id: Any
    raw: Any
    endpoint: str


def build_workflow_endpoint(
    config: UpstreamSettings, preferred_base: str | None = None
) -> str | None:
    """Resolve the workflows endpoint, or None when nothing is configured.

    An explicit endpoint wins. Otherwise a base URL whose path already has
    ``/api/v1/`` or ``/rest/`` (but no resource) gets ``workflows``
    appended; anything else maps to ``/api/v1/workflows`` on the host.
    """
    if config.n8n_workflows_endpoint:
        return config.n8n_workflows_endpoint

    raw_base = preferred_base or config.n8n_api_base or config.n8n_api_url
    if not raw_base:
        return None

    base = raw_base if raw_base.endswith("/") else f"{raw_base}/"
    parts = urlsplit(base)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise EndpointConfigError(f"Invalid n8n API base URL: {raw_base!r}")

    path = parts.path
    if ("/api/v1/" in path or "/rest/" in path) and "workflows" not in path:
        path = f"{path}workflows" if path.endswith("/") else f"{path}/workflows"
    else:
        path = MODERN_WORKFLOWS_PATH
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def build_auth_headers(
    config: UpstreamSettings,
    api_key_header: str | None = None,
    api_key_body: str | None = None,
) -> dict[str, str] | None:
    """Pick exactly one credential, or return None when none is available."""
    headers = {"Content-Type": "application/json"}

    api_key = api_key_header or api_key_body or config.n8n_api_key
    if api_key:
        return {**headers, API_KEY_HEADER: api_key}

    if config.n8n_bearer_token:
        return {**headers, "Authorization": f"Bearer {config.n8n_bearer_token}"}

    if config.n8n_basic_auth_user and config.n8n_basic_auth_password:
        pair = f"{config.n8n_basic_auth_user}:{config.n8n_basic_auth_password}"
        encoded = base64.b64encode(pair.encode("utf-8")).decode("ascii")
        return {**headers, "Authorization": f"Basic {encoded}"}

    return None


def _extract_workflow_id(parsed: Any) -> Any:
    if not isinstance(parsed, dict):
        return None
    if parsed.get("id") is not None:
        return parsed["id"]
    # Legacy /rest endpoints wrap the workflow in {"data": {...}}
    data = parsed.get("data")
    if isinstance(data, dict):
        return data.get("id")
    return None


class ImportForwarder:
    def __init__(
        self,
        client: httpx.AsyncClient,
        config: UpstreamSettings,
        catalog_factory: Callable[[], TemplateCatalog] | None = None,
    ):
        self._client = client
        self._config = config
        # Built lazily so inline-workflow imports work without template storage
        self._catalog_factory = catalog_factory

    async def _resolve_template(
        self, workflow: dict[str, Any] | None, template_id: str | None
    ) -> dict[str, Any]:
        resolved = workflow
        if resolved is None and template_id and self._catalog_factory is not None:
            try:
                resolved = await self._catalog_factory().get_template(template_id)
            except (NotFound, ValidationError) as e:
                logger.info("import_template_unresolved", template_id=template_id, error=e.detail)
                resolved = None

        if (
            not isinstance(resolved, dict)
            or resolved.get("nodes") is None
            or resolved.get("connections") is None
        ):
            raise TemplateResolutionError(
                f"No usable template for templateId={template_id!r}"
            )
        return resolved

    async def import_workflow(
        self,
        *,
        template_id: str | None = None,
        workflow: dict[str, Any] | None = None,
        name: str | None = None,
        api_key_header: str | None = None,
        api_key_body: str | None = None,
        api_base: str | None = None,
    ) -> ImportResult:
        resolved = await self._resolve_template(workflow, template_id)

        headers = build_auth_headers(self._config, api_key_header, api_key_body)
        if headers is None:
            workflow_imports_total.labels(outcome="auth_config_error").inc()
            raise AuthConfigError("No n8n API credentials resolvable")

        endpoint = build_workflow_endpoint(self._config, api_base)
        if endpoint is None:
            workflow_imports_total.labels(outcome="endpoint_config_error").inc()
            raise EndpointConfigError("No n8n API base or workflows endpoint configured")

        payload = {
            "name": name or resolved.get("name") or DEFAULT_WORKFLOW_NAME,
            "nodes": resolved["nodes"],
            "connections": resolved["connections"],
            "settings": resolved.get("settings") or {},
        }

        try:
            response = await self._client.post(endpoint, headers=headers, json=payload)
        except httpx.HTTPError as e:
            workflow_imports_total.labels(outcome="transport_error").inc()
            logger.error("workflow_import_failed", endpoint=endpoint, error=str(e))
            raise TransportError(f"n8n API request to {endpoint} failed: {e}") from e

        if response.is_error:
            workflow_imports_total.labels(outcome="upstream_rejected").inc()
            logger.warning(
                "workflow_import_rejected",
                endpoint=endpoint,
                status=response.status_code,
            )
            raise AuthUpstreamError(response.status_code, response.text)

        try:
            parsed = response.json()
        except ValueError:
            parsed = None

        workflow_imports_total.labels(outcome="created").inc()
        result = ImportResult(
            id=_extract_workflow_id(parsed),
            raw=parsed if parsed is not None else response.text,
            endpoint=endpoint,
        )
        logger.info("workflow_imported", endpoint=endpoint, workflow_id=result.id)
        return result
