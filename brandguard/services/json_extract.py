from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from brandguard.errors import JobFatalError

PREVIEW_CHARS = 200

_BRACE_SLICE_RE = re.compile(r"\{[\s\S]*\}")


class ExtractionStatus(str, Enum):
    success = "success"
    malformed = "malformed"
    absent = "absent"


class ExtractionError(JobFatalError):
    def __init__(self, message: str, *, preview: str) -> None:
        super().__init__(f"{message}. Response preview: {preview}")
        self.preview = preview


@dataclass(frozen=True)
class ExtractionResult:
    status: ExtractionStatus
    value: Optional[Dict[str, Any]] = None
    tier: Optional[str] = None
    preview: str = ""


def _preview(text: str) -> str:
    return text[:PREVIEW_CHARS]


def _as_object(candidate: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_direct(text: str) -> Optional[Dict[str, Any]]:
    return _as_object(text.strip())


def _balanced_span_end(text: str, start: int) -> Optional[int]:
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
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
                return i
    return None


def parse_first_balanced_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Parse the first balanced ``{...}`` span that decodes to an object.

    Braces inside JSON strings are ignored while balancing. Spans that do not parse are
    skipped and the scan resumes at the next opening brace.
    """
    start = text.find("{")
    while start != -1:
        end = _balanced_span_end(text, start)
        if end is None:
            return None
        parsed = _as_object(text[start : end + 1])
        if parsed is not None:
            return parsed
        start = text.find("{", start + 1)
    return None


def parse_brace_slice(text: str) -> Optional[Dict[str, Any]]:
    """Parse everything from the first ``{`` to the last ``}``."""
    match = _BRACE_SLICE_RE.search(text)
    if not match:
        return None
    return _as_object(match.group(0))


_TIERS: tuple[tuple[str, Callable[[str], Optional[Dict[str, Any]]]], ...] = (
    ("direct", parse_direct),
    ("balanced_object", parse_first_balanced_object),
    ("brace_slice", parse_brace_slice),
)


def try_extract(text: Optional[str]) -> ExtractionResult:
    if not isinstance(text, str) or not text.strip():
        return ExtractionResult(status=ExtractionStatus.absent, preview="")
    for tier_name, tier in _TIERS:
        parsed = tier(text)
        if parsed is not None:
            return ExtractionResult(
                status=ExtractionStatus.success,
                value=parsed,
                tier=tier_name,
                preview=_preview(text),
            )
    status = ExtractionStatus.malformed if "{" in text else ExtractionStatus.absent
    return ExtractionResult(status=status, preview=_preview(text))


def extract_structured(text: Optional[str]) -> Dict[str, Any]:
    """Return the JSON object embedded in a model response or raise ``ExtractionError``."""
    result = try_extract(text)
    if result.status is ExtractionStatus.success and result.value is not None:
        return result.value
    if result.status is ExtractionStatus.malformed:
        raise ExtractionError("Model response contained malformed JSON", preview=result.preview)
    raise ExtractionError("Model response contained no JSON object", preview=result.preview)
