"""
Response contract: raw AI text → candidate Lot objects.

Tolerant extractor:
  - Strips Markdown code fences (``` or ```json).
  - If prose surrounds the JSON, extracts the first top-level JSON object
    (or array of lot objects, which is wrapped as {"lots": [...]}).
  - Requires a "lots" list; anything else is a ResponseParseError.
  - Individual lot entries that fail validation (not an object, no title)
    are skipped and counted; the rest of the response survives.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from appraisal.core.errors import ResponseParseError
from appraisal.schemas.models import Lot


@dataclass(frozen=True)
class ParsedResponse:
    lots: list[Lot] = field(default_factory=list)
    summary: str | None = None
    language: str | None = None
    currency: str | None = None
    skipped: int = 0


def _strip_fences(s: str) -> str:
    if s.startswith("```"):
        s = re.sub(r"^```(?:json)?\s*", "", s, count=1, flags=re.IGNORECASE)
        s = re.sub(r"\s*```$", "", s, count=1)
    return s.strip()


def _balanced_span(s: str, start: int, open_ch: str, close_ch: str) -> str | None:
    """Bracket matching that ignores brackets inside JSON strings."""
    depth = 0
    in_str = False
    escaped = False
    for i in range(start, len(s)):
        ch = s[i]
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"':
            in_str = True
        elif ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return s[start : i + 1]
    return None


def extract_json(text: str) -> Any:
    if not isinstance(text, str):
        raise ResponseParseError("Provider returned non-string response.")
    s = _strip_fences(text.strip())
    if not s:
        raise ResponseParseError("Provider returned an empty response.")
    try:
        return json.loads(s)
    except json.JSONDecodeError:
        pass

    # Whichever JSON-looking opener comes first: an object, or an array of objects
    starts = []
    for pattern, open_ch, close_ch in ((r"\{\s*\"", "{", "}"), (r"\[\s*\{", "[", "]")):
        m = re.search(pattern, s)
        if m:
            starts.append((m.start(), open_ch, close_ch))
    for start, open_ch, close_ch in sorted(starts):
        span = _balanced_span(s, start, open_ch, close_ch)
        if span is None:
            continue
        try:
            return json.loads(span)
        except json.JSONDecodeError:
            continue
    raise ResponseParseError("Expected a JSON object in provider output.")


def _opt_str(v: Any) -> str | None:
    return v.strip() if isinstance(v, str) and v.strip() else None


def parse_lots_response(text: str) -> ParsedResponse:
    """
    Parse one collaborator response. Raises ResponseParseError when the
    response as a whole is unusable; callers drop that call's contribution.
    """
    loaded = extract_json(text)
    if isinstance(loaded, list):
        loaded = {"lots": loaded}
    if not isinstance(loaded, dict):
        raise ResponseParseError("Expected a JSON object in provider output.")

    raw_lots = loaded.get("lots")
    if not isinstance(raw_lots, list):
        raise ResponseParseError("Response has no 'lots' array.")

    lots: list[Lot] = []
    skipped = 0
    for item in raw_lots:
        if not isinstance(item, dict):
            skipped += 1
            continue
        try:
            lots.append(Lot.model_validate(item))
        except ValidationError:
            skipped += 1

    return ParsedResponse(
        lots=lots,
        summary=_opt_str(loaded.get("summary")),
        language=_opt_str(loaded.get("language")),
        currency=_opt_str(loaded.get("currency")),
        skipped=skipped,
    )


__all__ = ["ParsedResponse", "extract_json", "parse_lots_response"]
