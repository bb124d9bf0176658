"""Health check endpoint. No authentication required."""

from fastapi import APIRouter

router = APIRouter()


@router.get("/healthz")
async def health_check():
    """Liveness probe: the process is up and serving."""
    return {"status": "ok"}
