"""Template gallery FastAPI application entry point."""

from contextlib import AsyncExitStack, asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gallery.api.deps import resolve_storage_location, s3_region
from gallery.api.routes import health, imports, metrics, templates, ui
from gallery.core.config import settings
from gallery.core.errors import GalleryError
from gallery.core.logging_config import configure_logging
from gallery.core.metrics import app_info
from gallery.core.middleware import ObservabilityMiddleware
from gallery.core.object_store import create_s3_client
from gallery.core.storage_path import InvalidPath, ParsedPath
from gallery.schemas.template import ErrorResponse
from gallery.services.template_cache import TemplateCache

configure_logging()

logger = structlog.stdlib.get_logger("gallery.app")

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle events."""
    app_info.info({"version": VERSION, "env": settings.app_env})

    # One of each per process, shared by every request
    async with AsyncExitStack() as stack:
        app.state.http_client = await stack.enter_async_context(
            httpx.AsyncClient(timeout=settings.http_timeout_seconds)
        )
        app.state.template_cache = TemplateCache()
        app.state.s3_client = None

        location = resolve_storage_location()
        if isinstance(location, ParsedPath):
            app.state.s3_client = await stack.enter_async_context(
                create_s3_client(s3_region(location), settings.storage.s3_endpoint_url)
            )
        elif isinstance(location, InvalidPath):
            logger.error("storage_path_invalid", raw=location.raw, reason=location.reason)

        logger.info(
            "gallery_started",
            storage="s3" if location is not None else "disk",
            manifest=bool(settings.storage.template_manifest_key),
        )

        yield


app = FastAPI(
    title="n8n Template Gallery",
    description="Browse, upload and one-click-import n8n workflow templates",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GalleryError)
async def gallery_error_handler(request: Request, exc: GalleryError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        error_type=type(exc).__name__,
        status=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(message=exc.message, error=exc.detail).model_dump(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_crashed", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(message="Internal server error.", error=str(exc)).model_dump(),
    )


# Routes
app.include_router(health.router, tags=["health"])
app.include_router(templates.router, prefix="/api/templates", tags=["templates"])
app.include_router(imports.router, prefix="/api/import-workflow", tags=["import"])
if settings.metrics_enabled:
    app.include_router(metrics.router, tags=["metrics"])
# Catch-all, must stay last
app.include_router(ui.router, tags=["ui"])
