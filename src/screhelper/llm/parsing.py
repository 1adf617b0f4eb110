"""Verdict extraction from free-form model output.

Models wrap their JSON in prose, Markdown fences or both.
:func:`extract_json_object` walks the text and returns the first
*balanced* brace-delimited substring that decodes to a JSON object.
Braces inside JSON strings are ignored.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterator, Optional, Tuple

from ..core.errors import MalformedResponse
from ..core.models import Verdict
from ..core.normalization import parse_decision


MISSING_REASON = "No reason provided"
MISSING_CRITERION = "No criterion specified"


def _balanced_spans(text: str) -> Iterator[Tuple[int, int]]:
    """Yield ``(start, end)`` of each balanced ``{...}`` span, by start position."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        end = -1
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
                    end = i + 1
                    break
        if end != -1:
            yield start, end
        start = text.find("{", start + 1)


def extract_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the first balanced JSON object embedded in ``text``.

    Returns ``None`` when the text holds no brace-delimited substring
    that decodes to a JSON object.
    """
    if not text:
        return None
    for start, end in _balanced_spans(text):
        try:
            value = json.loads(text[start:end])
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None


def _as_text(value: Any, placeholder: str) -> str:
    if value is None:
        return placeholder
    if isinstance(value, (dict, list)):
        text = json.dumps(value, ensure_ascii=False)
    else:
        text = str(value)
    return text.strip() or placeholder


def parse_verdict(text: Optional[str]) -> Verdict:
    """Parse a backend reply into a :class:`Verdict`.

    Raises:
        MalformedResponse: no JSON object found, or ``include`` missing
            or not interpretable as a boolean.
    """
    payload = extract_json_object(text)
    if payload is None:
        raise MalformedResponse("No JSON object found in model response", raw=text)
    if "include" not in payload:
        raise MalformedResponse("Model response is missing the 'include' key", raw=text)
    include = parse_decision(payload["include"])
    if include is None:
        raise MalformedResponse(
            f"Cannot interpret 'include' value {payload['include']!r} as a decision", raw=text
        )
    return Verdict(
        include=include,
        reason=_as_text(payload.get("reason"), MISSING_REASON),
        criterion=_as_text(payload.get("criterion"), MISSING_CRITERION),
    )
