"""Error taxonomy for the template gallery.

Every error carries the HTTP status it is surfaced with. The exception
handlers registered in gallery.main turn them into
``{"message": ..., "error": ...}`` JSON bodies.
"""


class GalleryError(Exception):
    """Base error. ``message`` is shown to the user, ``detail`` is diagnostic."""

    status_code = 500
    default_message = "Template gallery request failed."

    def __init__(self, detail: str, message: str | None = None):
        self.detail = detail
        self.message = message or self.default_message
        super().__init__(detail)


class ValidationError(GalleryError):
    """A template is missing a required field or has a malformed one."""

    status_code = 500
    default_message = "Template validation failed."

    def __init__(self, field: str, reason: str = "missing"):
        self.field = field
        if reason == "missing":
            detail = f"Missing required field: {field}"
        else:
            detail = f"Malformed field {field}: {reason}"
        super().__init__(detail, message=f"Template validation failed. {detail}")


class NotFound(GalleryError):
    status_code = 404
    default_message = "Template not found."


class TransportError(GalleryError):
    """Network or HTTP failure against the object store or the n8n API."""

    status_code = 500
    default_message = "Upstream request failed. Check the server logs."


class StorageConfigError(GalleryError):
    """Template storage is misconfigured (bad path, no AWS credentials)."""

    status_code = 500
    default_message = "Template storage is not configured correctly."


class TemplateResolutionError(GalleryError):
    status_code = 400
    default_message = (
        "Template JSON not found. Check the templateId or workflow field."
    )


class AuthConfigError(GalleryError):
    status_code = 400
    default_message = (
        "No n8n API credentials available. Send an X-N8N-API-KEY header or an "
        "apiKey field, or set N8N_API_KEY, N8N_BEARER_TOKEN or "
        "N8N_BASIC_AUTH_USER/N8N_BASIC_AUTH_PASSWORD on the server."
    )


class EndpointConfigError(GalleryError):
    status_code = 400
    default_message = (
        "No n8n API address configured. Set N8N_API_BASE or "
        "N8N_WORKFLOWS_ENDPOINT, or send an apiBase field."
    )


class AuthUpstreamError(GalleryError):
    """n8n rejected the request; its status and body are relayed verbatim."""

    default_message = "The n8n API call failed."

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(
            detail=f"n8n API returned {status_code}",
            message=body or self.default_message,
        )
