"""Lenient JSON extraction from model output."""
from __future__ import annotations

import json
import re
from typing import Any

from partial_json_parser import loads as partial_loads

_FENCE_START = re.compile(r"^```(?:json)?\s*", re.MULTILINE)
_FENCE_END = re.compile(r"\s*```\s*$", re.MULTILINE)


def strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    return _FENCE_END.sub("", _FENCE_START.sub("", text.strip(), count=1), count=1).strip()


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Parse a JSON object out of model text.

    Uses three-tier fallback:
    1. ``json.loads()`` on the fence-stripped text
    2. ``json.loads()`` on the outermost ``{...}`` span
    3. ``partial_json_parser`` for truncated output

    Returns None if no object can be recovered.
    """
    if not text or not text.strip():
        return None
    candidate = strip_fences(text)
    try:
        result = json.loads(candidate)
        return result if isinstance(result, dict) else None
    except json.JSONDecodeError:
        pass

    start = candidate.find("{")
    if start == -1:
        return None
    end = candidate.rfind("}")
    if end > start:
        try:
            result = json.loads(candidate[start : end + 1])
            if isinstance(result, dict):
                return result
        except json.JSONDecodeError:
            pass

    try:
        result = partial_loads(candidate[start:])
    except Exception:
        return None
    return result if isinstance(result, dict) else None


def parse_json_list(value: Any) -> list[Any] | None:
    """Accept a list as-is or parse a JSON array string."""
    if isinstance(value, list):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        result = json.loads(strip_fences(value))
    except json.JSONDecodeError:
        try:
            result = partial_loads(value)
        except Exception:
            return None
    return result if isinstance(result, list) else None
