"""Dependency injection for FastAPI routes.

All services are provided via Depends() from this module.
Route handlers never instantiate services directly.

Process-wide singletons (HTTP client, template cache, S3 client) are
created in the app lifespan and live on app.state; everything built here is
cheap and per-request.
"""

from typing import Any

import httpx
from fastapi import Depends, Request

from gallery.core.config import settings
from gallery.core.errors import StorageConfigError
from gallery.core.object_store import LocalDirectoryStore, S3ObjectStore
from gallery.core.storage_path import InvalidPath, ParsedPath, parse_storage_path
from gallery.services.import_forwarder import ImportForwarder
from gallery.services.template_cache import TemplateCache
from gallery.services.template_catalog import TemplateCatalog


def resolve_storage_location() -> ParsedPath | InvalidPath | None:
    """The configured S3 location, or None when templates live on disk."""
    if not settings.storage.n8n_template_s3_path:
        return None
    return parse_storage_path(settings.storage.n8n_template_s3_path)


def s3_region(location: ParsedPath) -> str:
    """Region named by the storage URL, else AWS_REGION/AWS_DEFAULT_REGION."""
    return location.region or settings.storage.region


async def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


async def get_template_cache(request: Request) -> TemplateCache:
    return request.app.state.template_cache


async def get_s3_client(request: Request) -> Any:
    return request.app.state.s3_client


def build_template_catalog(cache: TemplateCache, s3_client: Any) -> TemplateCatalog:
    """Pick the object store for this deployment and wrap it in a catalog.

    No N8N_TEMPLATE_S3_PATH means templates come from TEMPLATES_DIR on disk.
    """
    catalog_settings = settings.catalog
    location = resolve_storage_location()

    if location is None:
        return TemplateCatalog(
            store=LocalDirectoryStore(settings.storage.templates_dir),
            cache=cache,
            cache_ttl=catalog_settings.template_cache_ttl,
            concurrency=catalog_settings.template_fetch_concurrency,
        )

    if isinstance(location, InvalidPath):
        raise StorageConfigError(
            f"Invalid N8N_TEMPLATE_S3_PATH {location.raw!r}: {location.reason}",
            message="Set N8N_TEMPLATE_S3_PATH to s3://bucket/prefix.",
        )
    if s3_client is None:
        raise StorageConfigError("S3 client was not opened at startup")

    return TemplateCatalog(
        store=S3ObjectStore(s3_client),
        cache=cache,
        bucket=location.bucket,
        prefix=location.prefix,
        manifest_key=settings.storage.template_manifest_key,
        cache_ttl=catalog_settings.template_cache_ttl,
        concurrency=catalog_settings.template_fetch_concurrency,
    )


async def get_template_catalog(
    cache: TemplateCache = Depends(get_template_cache),
    s3_client: Any = Depends(get_s3_client),
) -> TemplateCatalog:
    return build_template_catalog(cache, s3_client)


async def get_import_forwarder(
    cache: TemplateCache = Depends(get_template_cache),
    client: httpx.AsyncClient = Depends(get_http_client),
    s3_client: Any = Depends(get_s3_client),
) -> ImportForwarder:
    return ImportForwarder(
        client=client,
        config=settings.upstream,
        catalog_factory=lambda: build_template_catalog(cache, s3_client),
    )
