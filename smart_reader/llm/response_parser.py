"""
Response Parser - Defensive parsing of free-form model output

Generative backends return "JSON" wrapped in markdown fences, preceded by
chatter, or not JSON at all. Parsing never raises: it yields a tagged
result the caller must branch on.

    Parsed(value)              the payload decoded as JSON
    ParseError(raw_text, why)  the untouched response, for fallbacks/logging
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Union

from ..observability.logging import get_logger

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"^```(\w*)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


@dataclass(frozen=True)
class Parsed:
    """Successfully decoded JSON payload."""

    value: Any


@dataclass(frozen=True)
class ParseError:
    """Response that could not be decoded."""

    raw_text: str
    reason: str


ParseOutcome = Union[Parsed, ParseError]


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```lang ... ``` fence, if any."""
    cleaned = text.strip()
    match = _FENCE_RE.match(cleaned)
    if match and match.group(2):
        return match.group(2).strip()
    return cleaned


def parse_json_response(response: str, expect: type | None = None) -> ParseOutcome:
    """
    Decode a model response as JSON.

    Strips code fences, then tries the whole text, then the outermost
    [...] or {...} span (models often add a sentence before the payload).

    Args:
        response: Raw model output.
        expect: Optional required top-level type (list or dict).

    Returns:
        Parsed on success, ParseError otherwise.
    """
    if response is None or not response.strip():
        return ParseError(raw_text=response or "", reason="empty response")

    cleaned = strip_code_fence(response)
    candidates = [cleaned]
    for opener, closer in (("[", "]"), ("{", "}")):
        start = cleaned.find(opener)
        end = cleaned.rfind(closer) + 1
        if start >= 0 and end > start:
            candidates.append(cleaned[start:end])

    last_error = "no JSON payload found"
    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except (json.JSONDecodeError, ValueError) as exc:
            last_error = str(exc)
            continue
        if expect is not None and not isinstance(value, expect):
            last_error = f"expected {expect.__name__}, got {type(value).__name__}"
            continue
        return Parsed(value=value)

    logger.debug(
        "response_parser.parse_failed",
        error=last_error,
        response_preview=response[:200],
    )
    return ParseError(raw_text=response, reason=last_error)
