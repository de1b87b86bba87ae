"""Forgiving JSON extraction from LLM responses, plus safe field coercion.

Model output is untrusted: it may wrap JSON in markdown fences, surround it
with prose, or put values in the wrong type. Nothing here raises on bad
input; `scan_json` returns a ParsedJson carrying either data or an error,
and the get_* helpers return None for anything they can't coerce.
"""

import json
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

_JSON_FENCE = re.compile(r"```json\s*\n?(.*?)```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[^\n]*\n(.*?)```", re.DOTALL)

DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%b. %d, %Y",
)


@dataclass
class ParsedJson:
    """Outcome of scanning an LLM response for a JSON object."""

    data: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.data is not None


def find_balanced_object(text: str, start: int = 0) -> str | None:
    """Return the balanced {...} region opening at the first brace from `start`.

    Braces inside JSON strings are ignored.
    """
    start = text.find("{", start)
    if start < 0:
        return None

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
    return None


def _first_object(text: str) -> ParsedJson:
    """Try each brace in turn until a region parses to a JSON object."""
    error = None
    start = text.find("{")
    while start >= 0:
        region = find_balanced_object(text, start)
        if region is not None:
            try:
                data = json.loads(region)
            except json.JSONDecodeError as e:
                error = error or f"Invalid JSON: {e}"
            else:
                if isinstance(data, dict):
                    return ParsedJson(data=data)
                error = error or f"Expected a JSON object, got {type(data).__name__}"
        start = text.find("{", start + 1)
    return ParsedJson(error=error or "No JSON object found in response")


def extract_json_text(text: str) -> str:
    """The part of a response to search: a ```json fence, any fence with braces, or all of it."""
    match = _JSON_FENCE.search(text)
    if match:
        return match.group(1).strip()

    match = _ANY_FENCE.search(text)
    if match and "{" in match.group(1):
        return match.group(1).strip()

    return text


def scan_json(text: str | None) -> ParsedJson:
    """Parse the JSON object embedded in an LLM response."""
    if not text or not text.strip():
        return ParsedJson(error="Empty response")

    candidate = extract_json_text(text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        # Prose around the object, or brace spans in the prose itself
        return _first_object(candidate)

    if not isinstance(data, dict):
        return ParsedJson(error=f"Expected a JSON object, got {type(data).__name__}")
    return ParsedJson(data=data)


# ============================================================================
# Coercion helpers
# ============================================================================


def get_string(data: dict, key: str) -> str | None:
    value = data.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def get_decimal(data: dict, key: str) -> Decimal | None:
    """Numbers may arrive as JSON numbers or as strings like "$1,000,000"."""
    return to_decimal(data.get(key))


def to_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        # json.loads accepts NaN and Infinity, and 1e999 overflows to inf
        return Decimal(str(value)) if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = value.strip().replace("$", "").replace(",", "")
        if not cleaned:
            return None
        try:
            number = Decimal(cleaned)
        except InvalidOperation:
            return None
        return number if number.is_finite() else None
    return None


def get_bool(data: dict, key: str) -> bool | None:
    """Only JSON true/false count; the string "true" does not."""
    value = data.get(key)
    return value if isinstance(value, bool) else None


def get_int(data: dict, key: str) -> int | None:
    value = data.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    number = to_decimal(value)
    if number is not None and number == number.to_integral_value():
        return int(number)
    return None


def parse_date(value: Any) -> date | None:
    if not isinstance(value, str):
        return None
    text = " ".join(value.strip().split())
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def get_date(data: dict, key: str) -> date | None:
    return parse_date(data.get(key))


def get_confidence(data: dict, default: float = 0.5) -> float:
    """Model-reported confidence clamped to [0, 1]; default when absent."""
    value = data.get("confidence")
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return default
    number = to_decimal(value)
    if number is None:
        return default
    return min(1.0, max(0.0, float(number)))


def get_object(data: dict, key: str) -> dict | None:
    value = data.get(key)
    return value if isinstance(value, dict) else None


def get_list(data: dict, key: str) -> list | None:
    value = data.get(key)
    return value if isinstance(value, list) and value else None


def get_string_list(data: dict, key: str) -> list[str] | None:
    value = data.get(key)
    if not isinstance(value, list):
        return None
    items = [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return items or None
