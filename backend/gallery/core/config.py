"""Application configuration via pydantic-settings.

All config is sourced from environment variables. Never use os.getenv() directly.
"""

import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Where template JSON blobs live: S3 (or compatible) or a local directory."""

    model_config = SettingsConfigDict(env_prefix="")

    # s3://bucket/prefix, https://bucket.s3.region.amazonaws.com/prefix or bucket/prefix.
    # Unset means templates are read from templates_dir instead.
    n8n_template_s3_path: str | None = None
    aws_region: str | None = None
    aws_default_region: str | None = None
    # S3-compatible endpoint (MinIO etc.), switches to path-style addressing
    s3_endpoint_url: str | None = None
    # Manifest object key, relative to the storage prefix
    template_manifest_key: str | None = None
    templates_dir: str = "templates"
    # AWS credentials are not modelled here: botocore reads AWS_ACCESS_KEY_ID,
    # AWS_SECRET_ACCESS_KEY, AWS_SESSION_TOKEN, AWS_WEB_IDENTITY_TOKEN_FILE
    # and AWS_ROLE_ARN itself.

    @property
    def region(self) -> str:
        return self.aws_region or self.aws_default_region or "us-east-1"


class CatalogSettings(BaseSettings):
    """Template catalog caching and fetch settings."""

    model_config = SettingsConfigDict(env_prefix="")

    # In-process cache TTL (seconds)
    template_cache_ttl: float = 60
    # Max simultaneous object fetches while building the list
    template_fetch_concurrency: int = 4

    @field_validator("template_fetch_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("TEMPLATE_FETCH_CONCURRENCY must be at least 1")
        return v


class UpstreamSettings(BaseSettings):
    """n8n REST API that receives imported workflows."""

    model_config = SettingsConfigDict(env_prefix="")

    # Fully qualified workflows endpoint, used verbatim when set
    n8n_workflows_endpoint: str | None = None
    n8n_api_base: str | None = None
    n8n_api_url: str | None = None

    n8n_api_key: str | None = None
    n8n_bearer_token: str | None = None
    n8n_basic_auth_user: str | None = None
    n8n_basic_auth_password: str | None = None


class Settings(BaseSettings):
    """Template gallery settings.

    Environment variables are the single source of truth.
    Defaults are development-safe values only.
    """

    model_config = SettingsConfigDict(env_file=".env")

    app_env: str = "development"

    # Nested settings groups
    storage: StorageSettings = StorageSettings()
    catalog: CatalogSettings = CatalogSettings()
    upstream: UpstreamSettings = UpstreamSettings()

    # CORS
    cors_origins: list[str] = ["http://localhost:5173"]

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # Built UI bundle, served with an SPA fallback when the directory exists
    static_dir: str = "dist"

    # Outbound HTTP to the n8n API
    http_timeout_seconds: float = 30.0

    # Observability
    log_level: str = "INFO"
    log_format: str = "auto"  # auto, console or json
    metrics_enabled: bool = True

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return json.loads(v)
        return v


settings = Settings()
