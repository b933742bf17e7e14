"""Extract a JSON object from free-form model output."""

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


class ResponseParseError(ValueError):
    """Raised when model output does not contain a usable JSON object."""


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the JSON object in ``text``, tolerating markdown code fences.

    Tries the fence-stripped text first, then the widest ``{...}`` span so
    that prose before or after the object is ignored.

    Raises:
        ResponseParseError: If no JSON object can be parsed.
    """
    if not text or not text.strip():
        raise ResponseParseError("Empty model output")

    cleaned = _FENCE_RE.sub("", text).strip()
    candidates = [cleaned]
    match = _OBJECT_RE.search(cleaned)
    if match and match.group(0) != cleaned:
        candidates.append(match.group(0))

    last_error: Exception | None = None
    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = exc
            continue
        if not isinstance(payload, dict):
            raise ResponseParseError(f"Expected a JSON object, got {type(payload).__name__}")
        return payload

    raise ResponseParseError(f"No JSON object found in model output: {last_error}")
