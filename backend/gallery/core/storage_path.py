"""Parse the configured template storage path into bucket, prefix and region.

Accepted forms:
- s3://bucket/prefix
- https://bucket.s3.<region>.amazonaws.com/prefix   (virtual-hosted style, dots allowed in bucket)
- https://s3.<region>.amazonaws.com/bucket/prefix   (path style)
- bucket/prefix
"""

import re
from dataclasses import dataclass
from urllib.parse import urlsplit


@dataclass(frozen=True)
class ParsedPath:
    bucket: str
    prefix: str  # "" or ends with "/"
    region: str | None = None  # only when the URL host names one


@dataclass(frozen=True)
class InvalidPath:
    raw: str
    reason: str


# s3.amazonaws.com, s3.eu-west-1.amazonaws.com, s3-eu-west-1.amazonaws.com
_S3_HOST = re.compile(r"^s3(?:[.-](?P<region>[a-z0-9-]+))?\.amazonaws\.com$")
# my.bucket.s3.eu-west-1.amazonaws.com: everything before the s3 service host
_VIRTUAL_HOST = re.compile(
    r"^(?P<bucket>.+?)\.(?P<service>s3(?:[.-][a-z0-9-]+)?\.amazonaws\.com)$"
)


def _normalize_prefix(parts: list[str]) -> str:
    prefix = "/".join(parts)
    return f"{prefix}/" if prefix else ""


def _split_segments(path: str) -> list[str]:
    return [segment for segment in path.split("/") if segment]


def _region_from_host(host: str) -> str | None:
    match = _S3_HOST.match(host)
    if match:
        region = match.group("region")
        # s3-external-1 is the legacy us-east-1 alias
        return region if region and region != "external-1" else None
    return None


def parse_storage_path(raw: str | None) -> ParsedPath | InvalidPath:
    """Parse a storage path. Never raises; bad input yields InvalidPath."""
    value = (raw or "").strip()
    if not value:
        return InvalidPath(raw=value, reason="storage path is empty")

    if value.startswith("s3://"):
        segments = _split_segments(value[len("s3://"):])
        if not segments:
            return InvalidPath(raw=value, reason="no bucket after s3://")
        return ParsedPath(bucket=segments[0], prefix=_normalize_prefix(segments[1:]))

    if "://" in value:
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            return InvalidPath(raw=value, reason=f"unsupported URL {value!r}")
        host = parts.hostname.lower()
        segments = _split_segments(parts.path)

        if _S3_HOST.match(host):
            # Path style: bucket is the first path segment
            if not segments:
                return InvalidPath(raw=value, reason="no bucket in path-style URL")
            return ParsedPath(
                bucket=segments[0],
                prefix=_normalize_prefix(segments[1:]),
                region=_region_from_host(host),
            )

        virtual = _VIRTUAL_HOST.match(host)
        if virtual:
            bucket, service_host = virtual.group("bucket"), virtual.group("service")
        else:
            bucket, _, service_host = host.partition(".")
        return ParsedPath(
            bucket=bucket,
            prefix=_normalize_prefix(segments),
            region=_region_from_host(service_host),
        )

    segments = _split_segments(value)
    if not segments:
        return InvalidPath(raw=value, reason="no bucket in storage path")
    return ParsedPath(bucket=segments[0], prefix=_normalize_prefix(segments[1:]))
