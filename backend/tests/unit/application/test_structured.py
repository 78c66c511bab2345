"""Tests for JSON extraction from free-form model output."""

from __future__ import annotations

import pytest

from northstar.application.services import extract_json
from northstar.domain.exceptions import MalformedStructuredOutputError


class TestExtractJson:
    def test_plain_object(self) -> None:
        assert extract_json('{"sentiment": "positive", "score": 80}') == {
            "sentiment": "positive",
            "score": 80,
        }

    def test_fenced_and_wrapped_in_prose(self) -> None:
        text = 'Sure! Here you go:\n```json\n{"isCrisis": false, "confidence": 12}\n```\nTake care.'
        assert extract_json(text) == {"isCrisis": False, "confidence": 12}

    def test_first_balanced_value_wins(self) -> None:
        assert extract_json('{"a": 1} and then {"b": 2}') == {"a": 1}

    def test_brackets_inside_strings_ignored(self) -> None:
        text = 'Result: {"note": "use } and ] freely", "quote": "say \\"hi\\" {"} trailing'
        assert extract_json(text) == {"note": "use } and ] freely", "quote": 'say "hi" {'}

    def test_nested(self) -> None:
        assert extract_json('x [["a", {"b": [1, 2]}], "c"] y') == [["a", {"b": [1, 2]}], "c"]

    def test_expect_array_skips_leading_object_braces(self) -> None:
        text = 'Insights for {user}: ["Sleep earlier", "Walk daily"]'
        assert extract_json(text, expect="array") == ["Sleep earlier", "Walk daily"]

    def test_expect_object_skips_leading_list(self) -> None:
        assert extract_json('[1] then {"ok": true}', expect="object") == {"ok": True}

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "no structure at all",
            '{"unterminated": "yes"',
            '{"mismatched": [1, 2}',
            "{sentiment: positive}",
            "{'single': 'quotes'}",
        ],
    )
    def test_malformed(self, text: str) -> None:
        with pytest.raises(MalformedStructuredOutputError):
            extract_json(text)

    def test_non_text(self) -> None:
        with pytest.raises(MalformedStructuredOutputError):
            extract_json(None)  # type: ignore[arg-type]

    def test_expect_array_without_array(self) -> None:
        with pytest.raises(MalformedStructuredOutputError):
            extract_json('{"insights": "none"}', expect="array")
