"""Utility helpers."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*", flags=re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def extract_json(text: str | None) -> Any:
    """Best-effort parse of JSON a model was asked to return.

    Strips markdown fences, trailing commas and prose around the outermost
    object or array. Returns None when nothing parseable is found.
    """
    if not text:
        return None
    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    starts = [idx for idx in (cleaned.find("{"), cleaned.find("[")) if idx != -1]
    if not starts:
        return None
    start = min(starts)
    end = cleaned.rfind("}" if cleaned[start] == "{" else "]")
    if end <= start:
        return None
    candidate = _TRAILING_COMMA_RE.sub(r"\1", cleaned[start : end + 1])
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        return None
