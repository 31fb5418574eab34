import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger("PromoEngine")

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of turning a model response into a JSON object."""
    ok: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    raw: Optional[str] = None


def strip_code_fences(text: str) -> str:
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def _first_object(text: str) -> Optional[Dict[str, Any]]:
    """Decode the first balanced JSON object embedded in surrounding prose."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text[start:])
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None


def parse_model_output(raw: Optional[str]) -> ParseResult:
    """
    Parse a completion response that should contain one JSON object.

    Never raises. Fenced blocks are unwrapped first; if the remaining text is
    not a JSON object the first embedded object is used instead.
    """
    if raw is None or not raw.strip():
        return ParseResult(ok=False, error="Empty model response", raw=raw)

    candidate = strip_code_fences(raw)
    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as e:
        value = _first_object(candidate)
        if value is None:
            return ParseResult(ok=False, error=f"Invalid JSON: {e.msg} at char {e.pos}", raw=raw)
        logger.debug("Recovered JSON object embedded in prose")

    if not isinstance(value, dict):
        return ParseResult(ok=False, error=f"Expected a JSON object, got {type(value).__name__}", raw=raw)

    return ParseResult(ok=True, data=value, raw=raw)
