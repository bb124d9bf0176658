"""Object store clients for template blobs.

Two interchangeable implementations of ObjectStoreClient:
- S3ObjectStore: S3 (or an S3-compatible store) through aioboto3
- LocalDirectoryStore: a directory on disk standing in for the bucket

Which one a deployment uses is decided once, in gallery.api.deps.
"""

import asyncio
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

import aioboto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from gallery.core.errors import NotFound, StorageConfigError, TransportError
from gallery.core.metrics import (
    object_store_request_duration_seconds,
    object_store_requests_total,
)

logger = structlog.stdlib.get_logger(__name__)

TEMPLATE_EXTENSION = ".json"

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})


class ObjectStoreClient(Protocol):
    backend: str

    async def list_keys(self, bucket: str, prefix: str) -> list[str]:
        """All template keys (``*.json``) under prefix."""
        ...

    async def get_object(self, bucket: str, key: str) -> str:
        """Object content as text. Raises NotFound or TransportError."""
        ...

    async def put_object(
        self, bucket: str, key: str, text: str, content_type: str
    ) -> None:
        """Write an object. Raises TransportError."""
        ...


@contextmanager
def _observed(backend: str, operation: str) -> Iterator[None]:
    start = time.perf_counter()
    status = "ok"
    try:
        yield
    except NotFound:
        status = "not_found"
        raise
    except Exception:
        status = "error"
        raise
    finally:
        object_store_requests_total.labels(
            backend=backend, operation=operation, status=status
        ).inc()
        object_store_request_duration_seconds.labels(
            backend=backend, operation=operation
        ).observe(time.perf_counter() - start)


def create_s3_client(region: str, endpoint_url: str | None = None):
    """Async context manager yielding an aioboto3 S3 client.

    Credentials come from botocore's default chain: static keys from the
    environment first, then AWS_WEB_IDENTITY_TOKEN_FILE/AWS_ROLE_ARN with
    automatic refresh. An endpoint override switches to path-style
    addressing for MinIO and other S3-compatible stores.
    """
    config = Config(s3={"addressing_style": "path"}) if endpoint_url else None
    return aioboto3.Session().client(
        "s3",
        region_name=region,
        endpoint_url=endpoint_url or None,
        config=config,
    )


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _http_status(error: ClientError) -> int | None:
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


class S3ObjectStore:
    """S3 template store over a shared aioboto3 client.

    The client is opened once in the app lifespan; this class only maps
    botocore failures onto the gallery error types.
    """

    backend = "s3"

    def __init__(self, client: Any):
        self._client = client

    def _translate(self, error: Exception, bucket: str, key: str) -> Exception:
        if isinstance(error, ClientError):
            if _error_code(error) in _NOT_FOUND_CODES or _http_status(error) == 404:
                return NotFound(f"No such object: s3://{bucket}/{key}")
            return TransportError(
                f"S3 request failed ({_http_status(error)}): {_error_code(error)} {error}"
            )
        if isinstance(error, NoCredentialsError):
            return StorageConfigError(
                "No AWS credentials found. Set AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY "
                "or AWS_WEB_IDENTITY_TOKEN_FILE/AWS_ROLE_ARN."
            )
        return TransportError(f"S3 request for s3://{bucket}/{key} failed: {error}")

    async def list_keys(self, bucket: str, prefix: str) -> list[str]:
        keys: list[str] = []
        with _observed(self.backend, "list"):
            try:
                paginator = self._client.get_paginator("list_objects_v2")
                async for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                    keys.extend(item["Key"] for item in page.get("Contents", []))
            except (ClientError, BotoCoreError) as e:
                raise self._translate(e, bucket, prefix) from e
        template_keys = [key for key in keys if key.endswith(TEMPLATE_EXTENSION)]
        logger.debug(
            "s3_keys_listed",
            bucket=bucket,
            prefix=prefix,
            total=len(keys),
            templates=len(template_keys),
        )
        return template_keys

    async def get_object(self, bucket: str, key: str) -> str:
        with _observed(self.backend, "get"):
            try:
                response = await self._client.get_object(Bucket=bucket, Key=key)
                async with response["Body"] as stream:
                    data = await stream.read()
            except (ClientError, BotoCoreError) as e:
                raise self._translate(e, bucket, key) from e
        return data.decode("utf-8")

    async def put_object(
        self, bucket: str, key: str, text: str, content_type: str
    ) -> None:
        with _observed(self.backend, "put"):
            try:
                await self._client.put_object(
                    Bucket=bucket,
                    Key=key,
                    Body=text.encode("utf-8"),
                    ContentType=content_type,
                )
            except (ClientError, BotoCoreError) as e:
                raise self._translate(e, bucket, key) from e


class LocalDirectoryStore:
    """Templates as files under a root directory. The bucket is ignored."""

    backend = "disk"

    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root):
            raise NotFound(f"Key escapes the templates directory: {key}")
        return path

    def _scan(self, prefix: str) -> list[str]:
        base = self._resolve(prefix) if prefix else self._root
        if not base.is_dir():
            return []
        return sorted(
            path.relative_to(self._root).as_posix()
            for path in base.rglob(f"*{TEMPLATE_EXTENSION}")
            if path.is_file()
        )

    async def list_keys(self, bucket: str, prefix: str) -> list[str]:
        with _observed(self.backend, "list"):
            return await asyncio.to_thread(self._scan, prefix)

    async def get_object(self, bucket: str, key: str) -> str:
        with _observed(self.backend, "get"):
            path = self._resolve(key)
            try:
                return await asyncio.to_thread(path.read_text, encoding="utf-8")
            except FileNotFoundError as e:
                raise NotFound(f"No such template file: {path}") from e
            except OSError as e:
                raise TransportError(f"Cannot read {path}: {e}") from e

    async def put_object(
        self, bucket: str, key: str, text: str, content_type: str
    ) -> None:
        with _observed(self.backend, "put"):
            path = self._resolve(key)

            def _write() -> None:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(text, encoding="utf-8")

            try:
                await asyncio.to_thread(_write)
            except OSError as e:
                raise TransportError(f"Cannot write {path}: {e}") from e
