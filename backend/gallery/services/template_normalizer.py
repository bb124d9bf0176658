"""Template validation, defaults and id derivation.

One normalization path for both full templates (upload, detail) and
lightweight metadata entries (manifest, listing); the caller picks the
required field set.
"""

import math
import re
import time
from typing import Any

from gallery.core.errors import ValidationError

FULL_FIELDS: tuple[str, ...] = ("name", "description", "difficulty", "nodes", "connections")
METADATA_FIELDS: tuple[str, ...] = ("name", "description", "difficulty")

DIFFICULTIES: tuple[str, ...] = ("Beginner", "Intermediate", "Advanced")
DEFAULT_HERO_COLOR = "linear-gradient(120deg, #c084fc, #60a5fa)"

# Anything that is not a-z, 0-9 or a Hangul syllable becomes a separator
_SLUG_SEPARATOR = re.compile(r"[^a-z0-9가-힣]+")
_SLUG_MAX_LENGTH = 80


def slugify(value: str) -> str:
    slug = _SLUG_SEPARATOR.sub("-", value.strip().lower()).strip("-")[:_SLUG_MAX_LENGTH]
    if slug:
        return slug
    return f"template-{int(time.time() * 1000)}"


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _canonical_difficulty(value: Any) -> str:
    text = str(value).strip()
    for difficulty in DIFFICULTIES:
        if text.lower() == difficulty.lower():
            return difficulty
    raise ValidationError("difficulty", f"must be one of {', '.join(DIFFICULTIES)}")


def _coerce_minutes(value: Any) -> int | float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(minutes) or minutes == 0:
        return None
    return int(minutes) if minutes.is_integer() else minutes


def normalize_template(
    template: Any,
    required: tuple[str, ...] = FULL_FIELDS,
) -> dict[str, Any]:
    """Validate ``template`` and return a copy with defaults filled in.

    Raises ValidationError naming the first missing field in ``required``.
    Unknown keys are carried through. Normalizing an already normalized
    template returns an equal dict.
    """
    if not isinstance(template, dict):
        raise ValidationError("template", "must be a JSON object")

    for field in required:
        if _is_missing(template.get(field)):
            raise ValidationError(field)

    nodes = template.get("nodes")
    if nodes is not None and not isinstance(nodes, list):
        raise ValidationError("nodes", "must be a list")
    connections = template.get("connections")
    if connections is not None and not isinstance(connections, dict):
        raise ValidationError("connections", "must be an object")

    normalized = dict(template)

    template_id = template.get("id")
    if _is_missing(template_id):
        normalized["id"] = slugify(str(template.get("name") or ""))
    else:
        normalized["id"] = str(template_id).strip()

    if not _is_missing(template.get("difficulty")):
        normalized["difficulty"] = _canonical_difficulty(template["difficulty"])

    tags = template.get("tags")
    normalized["tags"] = (
        [str(tag).strip() for tag in tags if tag is not None and str(tag).strip()]
        if isinstance(tags, list)
        else []
    )

    normalized["heroColor"] = template.get("heroColor") or DEFAULT_HERO_COLOR

    credentials = template.get("credentials")
    normalized["credentials"] = (
        [credential for credential in credentials if credential]
        if isinstance(credentials, list)
        else []
    )

    minutes = _coerce_minutes(template.get("estimatedSetupMinutes"))
    if minutes is None:
        normalized.pop("estimatedSetupMinutes", None)
    else:
        normalized["estimatedSetupMinutes"] = minutes

    return normalized
