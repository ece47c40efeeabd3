"""Tests for classifier response parsing."""

import json

from focus_monitor.adapters.llm.response_parser import (
    FALLBACK_CONFIDENCE,
    FALLBACK_SUMMARY,
    PARSED_CONFIDENCE,
    MalformedResponse,
    ParsedResponse,
    extract_json_object,
    fallback_result,
    fix_json,
    parse_response,
)
from focus_monitor.core import Category, Sentiment, Tier, Urgency

VALID_RESPONSE = {
    "summary": "Acme reported record revenue for the quarter.",
    "keyPoints": ["Revenue up 20%", "New CEO named"],
    "classification": {
        "tier": "tier1",
        "category": "business",
        "tags": ["earnings", "acme"],
        "sentiment": "positive",
        "urgency": "high",
    },
    "reasoning": "Major financial announcement",
}


def test_extract_json_from_markdown() -> None:
    """Test extracting JSON from markdown code block."""
    text = '```json\n{"summary": "x", "tier": "tier1"}\n```'
    assert extract_json_object(text) == {"summary": "x", "tier": "tier1"}


def test_extract_json_from_markdown_without_language() -> None:
    """Test extracting JSON from markdown code block without language tag."""
    text = '```\n{"summary": "y"}\n```'
    assert extract_json_object(text) == {"summary": "y"}


def test_extract_json_from_text_with_prefix() -> None:
    """Test extracting JSON when there's prose around it."""
    text = 'Here is the analysis:\n{"summary": "z", "nested": {"a": 1}}\nHope this helps!'
    assert extract_json_object(text) == {"summary": "z", "nested": {"a": 1}}


def test_extract_json_braces_inside_strings() -> None:
    """Test braces inside string values do not end the object early."""
    text = 'Result: {"summary": "uses {curly} braces", "ok": true}'
    assert extract_json_object(text) == {"summary": "uses {curly} braces", "ok": True}


def test_extract_json_skips_unbalanced_prefix() -> None:
    """Test a stray opening brace before the real object is skipped."""
    text = 'Note { this is not json\n{"summary": "later"}'
    assert extract_json_object(text) == {"summary": "later"}


def test_extract_json_none() -> None:
    """Test text without any object returns None."""
    assert extract_json_object("not json at all") is None
    assert extract_json_object('["a", "b"]') is None
    assert extract_json_object("{broken: }") is None


def test_fix_json_trailing_comma() -> None:
    """Test fixing trailing comma in JSON."""
    parsed = json.loads(fix_json('{"tags": ["a", "b",], "summary": "s",}'))
    assert parsed == {"tags": ["a", "b"], "summary": "s"}


def test_parse_response_valid() -> None:
    """Test a complete response is parsed."""
    raw = "Sure!\n```json\n" + json.dumps(VALID_RESPONSE) + "\n```"

    outcome = parse_response(raw, model="test-model", processing_time_ms=120)

    assert isinstance(outcome, ParsedResponse)
    result = outcome.result
    assert result.summary == "Acme reported record revenue for the quarter."
    assert result.key_points == ["Revenue up 20%", "New CEO named"]
    assert result.classification.tier is Tier.TIER1
    assert result.classification.category is Category.BUSINESS
    assert result.classification.tags == ["earnings", "acme"]
    assert result.classification.sentiment is Sentiment.POSITIVE
    assert result.classification.urgency is Urgency.HIGH
    assert result.metadata.model == "test-model"
    assert result.metadata.processing_time_ms == 120
    assert result.metadata.confidence == PARSED_CONFIDENCE
    assert result.metadata.reasoning == "Major financial announcement"


def test_parse_response_defaults_invalid_fields() -> None:
    """Test each invalid classification field falls back independently."""
    data = dict(VALID_RESPONSE)
    data["classification"] = {
        "tier": "tier9",
        "category": "gossip",
        "tags": ["a", "b", "c", "d", "e", "f", "g"],
        "sentiment": "POSITIVE",
    }

    outcome = parse_response(json.dumps(data), model="m", processing_time_ms=1)

    assert isinstance(outcome, ParsedResponse)
    classification = outcome.result.classification
    assert classification.tier is Tier.TIER2
    assert classification.category is Category.OTHER
    assert classification.tags == ["a", "b", "c", "d", "e"]
    assert classification.sentiment is Sentiment.POSITIVE
    assert classification.urgency is Urgency.MEDIUM


def test_parse_response_bounds_lengths() -> None:
    """Test summary and key points are truncated to their maximums."""
    data = dict(VALID_RESPONSE, summary="s" * 5000, keyPoints=["k" * 500])

    outcome = parse_response(json.dumps(data), model="m", processing_time_ms=1)

    assert isinstance(outcome, ParsedResponse)
    assert len(outcome.result.summary) == 2000
    assert outcome.result.key_points == ["k" * 200]


def test_parse_response_malformed() -> None:
    """Test unusable responses are reported, not raised."""
    assert parse_response("not json", "m", 1) == MalformedResponse("No JSON object found in response")
    assert parse_response('{"classification": {}}', "m", 1) == MalformedResponse(
        "Response is missing 'summary'"
    )
    assert parse_response('{"summary": "ok"}', "m", 1) == MalformedResponse(
        "Response is missing 'classification'"
    )


def test_fallback_result() -> None:
    """Test the deterministic fallback classification."""
    result = fallback_result("m", 42, reason="No JSON object found in response")

    assert result.summary == FALLBACK_SUMMARY
    assert result.key_points == ["Content processing failed"]
    assert result.classification.tier is Tier.TIER2
    assert result.classification.category is Category.OTHER
    assert result.classification.tags == ["error"]
    assert result.classification.sentiment is Sentiment.NEUTRAL
    assert result.classification.urgency is Urgency.LOW
    assert result.metadata.confidence == FALLBACK_CONFIDENCE
    assert result.metadata.processing_time_ms == 42
    assert result.metadata.reasoning == "Fallback due to parsing error: No JSON object found in response"
