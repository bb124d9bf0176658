"""Run the gallery with uvicorn: ``n8n-template-gallery`` or ``python -m gallery.server``."""

import uvicorn

from gallery.core.config import settings


def main() -> None:
    uvicorn.run(
        "gallery.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,  # structlog owns logging
    )


if __name__ == "__main__":
    main()
