"""Template Catalog: lists, loads and stores templates in the object store.

Listing prefers the cheapest source that works:
1. the in-process cache
2. the manifest object (one GET instead of LIST + N GETs)
3. a full listing of ``<prefix>*.json``, fetched with bounded concurrency

Detail lookups reuse the storage key recorded by the last listing when there
is one, and every write invalidates the whole cache.
"""

import json
import posixpath
from dataclasses import dataclass, field
from typing import Any

import structlog

from gallery.core.errors import NotFound, ValidationError
from gallery.core.object_store import TEMPLATE_EXTENSION, ObjectStoreClient
from gallery.services.batch_fetcher import DEFAULT_CONCURRENCY, gather_limited
from gallery.services.template_cache import LIST_KEY, TemplateCache, template_key
from gallery.services.template_normalizer import (
    FULL_FIELDS,
    METADATA_FIELDS,
    normalize_template,
)

logger = structlog.stdlib.get_logger(__name__)


@dataclass
class TemplateListing:
    """What gets cached under LIST_KEY."""

    templates: list[dict[str, Any]]
    keys: dict[str, str] = field(default_factory=dict)  # template id -> storage key
    source: str = "listing"  # "manifest" or "listing"


def _id_from_key(key: str) -> str:
    return posixpath.basename(key).removesuffix(TEMPLATE_EXTENSION)


def _check_storable_id(template_id: str) -> None:
    """An id maps to exactly one object directly under the prefix."""
    if "/" in template_id or "\\" in template_id or ".." in template_id:
        raise ValidationError("id", "must not contain '/', '\\' or '..'")


class TemplateCatalog:
    def __init__(
        self,
        store: ObjectStoreClient,
        cache: TemplateCache,
        bucket: str = "",
        prefix: str = "",
        manifest_key: str | None = None,
        cache_ttl: float = 60,
        concurrency: int = DEFAULT_CONCURRENCY,
    ):
        self._store = store
        self._cache = cache
        self._bucket = bucket
        self._prefix = prefix
        self._manifest_key = manifest_key or None
        self._cache_ttl = cache_ttl
        self._concurrency = concurrency

    @property
    def backend(self) -> str:
        return self._store.backend

    def default_key(self, template_id: str) -> str:
        return f"{self._prefix}{template_id}{TEMPLATE_EXTENSION}"

    @property
    def manifest_object_key(self) -> str | None:
        if not self._manifest_key:
            return None
        key = self._manifest_key.lstrip("/")
        if self._prefix and key.startswith(self._prefix):
            return key
        return f"{self._prefix}{key}"

    # --- Listing ---

    async def list_templates(self) -> list[dict[str, Any]]:
        listing: TemplateListing = await self._cache.get_or_fetch(
            LIST_KEY, self._cache_ttl, self._load_listing
        )
        return listing.templates

    async def _load_listing(self) -> TemplateListing:
        listing = None
        manifest_key = self.manifest_object_key
        if manifest_key:
            listing = await self._load_from_manifest(manifest_key)
        if listing is None:
            listing = await self._load_from_objects()

        if not listing.templates and self._store.backend == "disk":
            raise NotFound(
                "No template files found on local disk",
                message="No templates found.",
            )

        logger.info(
            "template_list_loaded",
            source=listing.source,
            backend=self._store.backend,
            count=len(listing.templates),
        )
        return listing

    async def _load_from_manifest(self, key: str) -> TemplateListing | None:
        try:
            text = await self._store.get_object(self._bucket, key)
        except NotFound:
            logger.warning("manifest_unusable", key=key, reason="missing")
            return None

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("manifest_unusable", key=key, reason=f"invalid JSON: {e}")
            return None

        entries = data.get("templates") if isinstance(data, dict) else data
        if not isinstance(entries, list):
            logger.warning("manifest_unusable", key=key, reason="no template array")
            return None

        templates: list[dict[str, Any]] = []
        keys: dict[str, str] = {}
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            entry = dict(entry)
            storage_key = entry.pop("key", None)
            if not entry.get("id") and isinstance(storage_key, str):
                entry["id"] = _id_from_key(storage_key)
            try:
                template = normalize_template(entry, METADATA_FIELDS)
            except ValidationError as e:
                logger.warning("manifest_entry_skipped", key=key, error=e.detail)
                continue
            templates.append(template)
            keys[template["id"]] = (
                storage_key if isinstance(storage_key, str) else self.default_key(template["id"])
            )

        if not templates:
            logger.warning("manifest_unusable", key=key, reason="no well-formed entries")
            return None
        return TemplateListing(templates=templates, keys=keys, source="manifest")

    async def _load_from_objects(self) -> TemplateListing:
        manifest_key = self.manifest_object_key
        keys = [
            key
            for key in await self._store.list_keys(self._bucket, self._prefix)
            if key != manifest_key
        ]
        documents = await gather_limited(keys, self._fetch_document, self._concurrency)

        templates: list[dict[str, Any]] = []
        key_map: dict[str, str] = {}
        for key, document in zip(keys, documents):
            if document is None:
                continue
            if not document.get("id"):
                document["id"] = _id_from_key(key)
            try:
                template = normalize_template(document, METADATA_FIELDS)
            except ValidationError as e:
                logger.warning("template_skipped", key=key, error=e.detail)
                continue
            templates.append(template)
            key_map[template["id"]] = key

        return TemplateListing(templates=templates, keys=key_map, source="listing")

    async def _fetch_document(self, key: str) -> dict[str, Any] | None:
        text = await self._store.get_object(self._bucket, key)
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("template_skipped", key=key, error=f"invalid JSON: {e}")
            return None
        if not isinstance(document, dict):
            logger.warning("template_skipped", key=key, error="not a JSON object")
            return None
        return document

    # --- Detail ---

    async def get_template(self, template_id: str) -> dict[str, Any]:
        """Full template by id. Raises NotFound when no object backs it."""
        return await self._cache.get_or_fetch(
            template_key(template_id),
            self._cache_ttl,
            lambda: self._load_template(template_id),
        )

    def _known_key(self, template_id: str) -> str | None:
        listing: TemplateListing | None = self._cache.get(LIST_KEY)
        if listing is None:
            return None
        return listing.keys.get(template_id)

    async def _load_template(self, template_id: str) -> dict[str, Any]:
        key = self._known_key(template_id) or self.default_key(template_id)
        text = await self._store.get_object(self._bucket, key)
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError("template", f"stored object {key} is not valid JSON") from e
        if isinstance(document, dict) and not document.get("id"):
            document["id"] = template_id
        return normalize_template(document, FULL_FIELDS)

    # --- Writes ---

    async def upload_template(self, payload: Any) -> tuple[dict[str, Any], str]:
        """Validate, store and return (template, storage key). Clears the cache."""
        template = normalize_template(payload, FULL_FIELDS)
        _check_storable_id(template["id"])
        key = self.default_key(template["id"])
        body = json.dumps(template, indent=2, ensure_ascii=False)
        await self._store.put_object(self._bucket, key, body, "application/json")
        self._cache.invalidate_all()
        logger.info(
            "template_uploaded",
            template_id=template["id"],
            key=key,
            backend=self._store.backend,
        )
        return template, key
