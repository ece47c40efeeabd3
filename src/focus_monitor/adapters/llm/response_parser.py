"""Parsing of free-text classifier responses.

The model is asked for JSON but may wrap it in prose or code fences, leave
trailing commas, or answer with something else entirely. Parsing returns
either ``ParsedResponse`` or ``MalformedResponse``; it never raises.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from focus_monitor.core.entities import (
    MAX_KEY_POINT_LENGTH,
    MAX_SUMMARY_LENGTH,
    MAX_TAGS,
    AIMetadata,
    Category,
    Classification,
    ClassificationResult,
    Sentiment,
    Tier,
    Urgency,
)

PARSED_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.1

FALLBACK_SUMMARY = "Content summary could not be generated due to processing error."
FALLBACK_KEY_POINTS = ["Content processing failed"]
FALLBACK_TAGS = ["error"]

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n```", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


@dataclass(frozen=True)
class ParsedResponse:
    result: ClassificationResult


@dataclass(frozen=True)
class MalformedResponse:
    reason: str


ParseOutcome = Union[ParsedResponse, MalformedResponse]


def fix_json(text: str) -> str:
    """Try to fix common JSON issues."""
    # Remove trailing commas before } or ]
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def _balanced_object_end(text: str, start: int) -> Optional[int]:
    """Index just past the ``}`` closing the object opened at ``start``."""
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
                return i + 1
    return None


def _load_object(candidate: str) -> Optional[dict[str, Any]]:
    try:
        value = json.loads(fix_json(candidate))
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """Return the first balanced JSON object found in ``text``, if any."""
    # Strategy 1: JSON in a markdown code block
    code_block = _CODE_BLOCK_RE.search(text)
    if code_block:
        parsed = _load_object(code_block.group(1).strip())
        if parsed is not None:
            return parsed

    # Strategy 2: scan for the first balanced {...} that decodes
    start = text.find("{")
    while start != -1:
        end = _balanced_object_end(text, start)
        if end is not None:
            parsed = _load_object(text[start:end])
            if parsed is not None:
                return parsed
        start = text.find("{", start + 1)
    return None


def _enum_or_default(enum_cls: type, value: Any, default: Any) -> Any:
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    return default


def _string_list(value: Any, limit: Optional[int] = None, max_length: Optional[int] = None) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [str(item).strip() for item in value if item is not None and str(item).strip()]
    if max_length is not None:
        items = [item[:max_length] for item in items]
    return items[:limit] if limit is not None else items


def parse_classification(data: dict[str, Any]) -> Classification:
    """Build a classification, defaulting each absent or invalid field on its own."""
    return Classification(
        tier=_enum_or_default(Tier, data.get("tier"), Tier.TIER2),
        category=_enum_or_default(Category, data.get("category"), Category.OTHER),
        tags=_string_list(data.get("tags"), limit=MAX_TAGS),
        sentiment=_enum_or_default(Sentiment, data.get("sentiment"), Sentiment.NEUTRAL),
        urgency=_enum_or_default(Urgency, data.get("urgency"), Urgency.MEDIUM),
    )


def parse_response(raw: str, model: str, processing_time_ms: int) -> ParseOutcome:
    """Parse a raw model response into a classification result."""
    data = extract_json_object(raw or "")
    if data is None:
        return MalformedResponse("No JSON object found in response")

    summary = data.get("summary")
    classification = data.get("classification")
    if not isinstance(summary, str) or not summary.strip():
        return MalformedResponse("Response is missing 'summary'")
    if not isinstance(classification, dict):
        return MalformedResponse("Response is missing 'classification'")

    reasoning = data.get("reasoning")
    result = ClassificationResult(
        summary=summary.strip()[:MAX_SUMMARY_LENGTH],
        key_points=_string_list(
            data.get("keyPoints", data.get("key_points")), max_length=MAX_KEY_POINT_LENGTH
        ),
        classification=parse_classification(classification),
        metadata=AIMetadata(
            model=model,
            processing_time_ms=processing_time_ms,
            confidence=PARSED_CONFIDENCE,
            reasoning=reasoning if isinstance(reasoning, str) else "",
        ),
    )
    return ParsedResponse(result)


def fallback_result(model: str, processing_time_ms: int, reason: str = "") -> ClassificationResult:
    """Deterministic result used whenever the classifier output is unusable."""
    reasoning = "Fallback due to parsing error"
    if reason:
        reasoning = f"{reasoning}: {reason}"
    return ClassificationResult(
        summary=FALLBACK_SUMMARY,
        key_points=list(FALLBACK_KEY_POINTS),
        classification=Classification(
            tier=Tier.TIER2,
            category=Category.OTHER,
            tags=list(FALLBACK_TAGS),
            sentiment=Sentiment.NEUTRAL,
            urgency=Urgency.LOW,
        ),
        metadata=AIMetadata(
            model=model,
            processing_time_ms=processing_time_ms,
            confidence=FALLBACK_CONFIDENCE,
            reasoning=reasoning,
        ),
    )
