import pytest

from brandguard.services.json_extract import (
    ExtractionError,
    ExtractionStatus,
    extract_structured,
    parse_brace_slice,
    parse_direct,
    parse_first_balanced_object,
    try_extract,
)


def test_extract_structured_plain_object():
    assert extract_structured('{"a": 1}') == {"a": 1}


def test_extract_structured_with_preamble_and_suffix():
    assert extract_structured('Here is the result: {"a":1} Thanks!') == {"a": 1}


def test_extract_structured_from_markdown_fence():
    text = '```json\n{"status": "pass", "citations": []}\n```'
    assert extract_structured(text) == {"status": "pass", "citations": []}


def test_balanced_tier_ignores_braces_in_strings():
    text = 'prefix {"a": "value with } brace", "b": {"c": "{nested} ok"}} suffix'
    assert parse_first_balanced_object(text) == {"a": "value with } brace", "b": {"c": "{nested} ok"}}


def test_balanced_tier_skips_spans_that_do_not_parse():
    text = "notes {not json} then {\"ok\": true}"
    assert parse_first_balanced_object(text) == {"ok": True}


def test_brace_slice_tier_spans_first_to_last_brace():
    assert parse_brace_slice('x {"a": {"b": 2}} y') == {"a": {"b": 2}}


def test_direct_tier_rejects_non_objects():
    assert parse_direct("[1, 2]") is None
    assert parse_direct('"text"') is None


def test_try_extract_reports_tier_used():
    assert try_extract('{"a": 1}').tier == "direct"
    assert try_extract('say {"a": 1} end').tier == "balanced_object"


def test_try_extract_absent_without_braces():
    result = try_extract("not json at all")
    assert result.status is ExtractionStatus.absent
    assert result.value is None


def test_try_extract_malformed_with_broken_braces():
    result = try_extract('{"a": 1, "b": }')
    assert result.status is ExtractionStatus.malformed


def test_try_extract_empty_text_is_absent():
    assert try_extract("   ").status is ExtractionStatus.absent
    assert try_extract(None).status is ExtractionStatus.absent


def test_extract_structured_raises_with_preview():
    text = "not json at all " * 30
    with pytest.raises(ExtractionError) as excinfo:
        extract_structured(text)
    assert excinfo.value.preview == text[:200]
    assert "no JSON object" in str(excinfo.value)


def test_extract_structured_raises_on_malformed():
    with pytest.raises(ExtractionError, match="malformed JSON"):
        extract_structured('result: {"status": "pass",')
