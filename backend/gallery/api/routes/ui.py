"""Serves the built gallery UI with an SPA fallback to index.html.

Registered last so every API route wins. Unknown /api paths stay 404s
instead of turning into HTML.
"""

from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse

from gallery.core.config import settings
from gallery.core.errors import NotFound

router = APIRouter()


@router.get("/{full_path:path}", include_in_schema=False)
async def serve_ui(full_path: str):
    if full_path == "api" or full_path.startswith("api/"):
        raise NotFound(f"No API route for /{full_path}", message="Not found.")

    root = Path(settings.static_dir).resolve()
    if full_path:
        candidate = (root / full_path).resolve()
        if candidate.is_relative_to(root) and candidate.is_file():
            return FileResponse(candidate)

    index = root / "index.html"
    if not index.is_file():
        raise NotFound(f"UI bundle not found in {root}", message="Not found.")
    return FileResponse(index)
