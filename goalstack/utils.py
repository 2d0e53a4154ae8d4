"""Shared utility functions used across GoalStack modules."""
from __future__ import annotations

import json
import re
from typing import Any

_MISSING = object()

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences LLMs like to wrap JSON in."""
    return _FENCE_RE.sub("", text).strip()


def json_parse(value: str | None, default: Any = _MISSING) -> Any:
    """Safely parse a JSON string (code fences allowed), returning *default* on failure.

    If no default is given, returns ``{}`` on parse error.
    """
    try:
        return json.loads(strip_code_fences(value or ""))
    except (json.JSONDecodeError, TypeError):
        return {} if default is _MISSING else default
