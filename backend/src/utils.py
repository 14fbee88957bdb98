"""Utility helpers for the POI step planner."""

from __future__ import annotations

import math
import re
from typing import Any, Optional


EARTH_RADIUS_M = 6371000.0


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def strip_thinking_tokens(text: str) -> str:
    """Remove <think>...</think> blocks if present."""
    if not text:
        return text
    while True:
        start = text.find("<think>")
        if start == -1:
            break
        end = text.find("</think>", start)
        if end == -1:
            break
        text = text[:start] + text[end + len("</think>") :]
    return text


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def is_valid_coordinate(lat: Any, lng: Any) -> bool:
    if not is_number(lat) or not is_number(lng):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def is_number(value: Any) -> bool:
    """True for finite ints/floats; bools are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


_LEADING_PROSE = [
    re.compile(r"^\s*here\s+is\s+[^:{]*:\s*", re.IGNORECASE),
    re.compile(r"^\s*based\s+on\s+[^,{]*,\s*", re.IGNORECASE),
]
_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def clean_response_text(text: str) -> str:
    """Strip reasoning blocks, code fences and leading prose from model output."""
    if not text:
        return ""
    text = strip_thinking_tokens(text)
    text = _CODE_FENCE.sub("", text)
    for pattern in _LEADING_PROSE:
        text = pattern.sub("", text, count=1)
    return text.strip()


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced top-level JSON object embedded in ``text``.

    Braces inside string literals (including escaped quotes) are ignored, so
    ``{"a": "}"}`` is returned whole. Returns None when no balanced object exists.
    """
    if not text:
        return None
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # unbalanced from this brace; try the next opening brace
        start = text.find("{", start + 1)
    return None


_MARKUP_PATTERNS = [
    re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<iframe\b[^>]*>.*?</iframe\s*>", re.IGNORECASE | re.DOTALL),
    # unclosed or stray tags left over after the paired patterns
    re.compile(r"</?\s*(?:script|iframe)\b[^>]*>?", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
]


def sanitize_text(value: str) -> str:
    for pattern in _MARKUP_PATTERNS:
        value = pattern.sub("", value)
    return value.strip()


def sanitize_value(value: Any) -> Any:
    """Recursively strip executable markup from every string in ``value``."""
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, dict):
        return {k: sanitize_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [sanitize_value(v) for v in value]
    return value
