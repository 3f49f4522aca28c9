"""
Tests for prompt construction and normalization of model output.
"""
import json

import pytest

from obligation_registry.core.errors import ResponseParseError
from obligation_registry.services.obligation_parser import (
    PLACEHOLDER_TEXT,
    build_extraction_prompt,
    normalize_obligation,
    normalize_response,
    parse_obligations,
    strip_code_fences,
)

ITEMS = [
    {"obligation": "Pay the licence fee", "section": "3.2", "dueDate": "2024-02-01"},
    {"obligation": "Keep records", "section": "7", "dueDate": None},
]


class TestPrompt:

    def test_prompt_frames_party_and_requires_json(self):
        prompt = build_extraction_prompt("Globex Corp")

        assert "contract manager for Globex Corp" in prompt
        assert "obligations that Globex Corp has" in prompt
        assert "section" in prompt
        assert "due date" in prompt
        assert "JSON array" in prompt


class TestParseObligations:

    def test_plain_json_array(self):
        assert parse_obligations(json.dumps(ITEMS)) == ITEMS

    def test_markdown_fenced_array(self):
        text = "```json\n" + json.dumps(ITEMS, indent=2) + "\n```"
        assert parse_obligations(text) == ITEMS

    def test_array_embedded_in_prose(self):
        text = "Here are the obligations I found:\n" + json.dumps(ITEMS) + "\nLet me know if you need more."
        assert parse_obligations(text) == ITEMS

    def test_prose_with_brackets_after_the_array(self):
        text = json.dumps(ITEMS) + "\n\nNote: see clause [12] for renewals."
        assert parse_obligations(text) == ITEMS

    def test_wrapped_object(self):
        assert parse_obligations(json.dumps({"obligations": ITEMS})) == ITEMS

    def test_empty_array_is_a_valid_result(self):
        assert parse_obligations("[]") == []

    def test_alternative_keys_are_normalized(self):
        text = json.dumps([{"text": "Notify changes", "clause": 5, "due_date": "2024-05-01"}])
        assert parse_obligations(text) == [
            {"obligation": "Notify changes", "section": "5", "dueDate": "2024-05-01"}
        ]

    def test_entries_without_text_are_dropped(self):
        text = json.dumps([{"section": "1"}, {"obligation": "Pay"}])
        assert parse_obligations(text) == [{"obligation": "Pay", "section": None, "dueDate": None}]

    def test_deeply_nested_brackets_raise_parse_error(self):
        with pytest.raises(ResponseParseError):
            parse_obligations("[" * 5000 + "]" * 5000)

    @pytest.mark.parametrize("text", ["", "   ", "I could not read the contract.", "[1, 2, 3]", "{\"a\": 1}"])
    def test_unstructured_output_raises(self, text):
        with pytest.raises(ResponseParseError):
            parse_obligations(text)


class TestNormalizeResponse:

    def test_parsed_output(self):
        obligations, parsed = normalize_response(json.dumps(ITEMS))
        assert parsed is True
        assert obligations == ITEMS

    def test_unparseable_output_becomes_single_placeholder(self):
        raw = "Sorry, I am unable to extract obligations from this file."
        obligations, parsed = normalize_response(raw)

        assert parsed is False
        assert obligations == [
            {"obligation": PLACEHOLDER_TEXT, "section": "N/A", "dueDate": None, "raw_response": raw}
        ]

    def test_deeply_nested_output_becomes_placeholder(self):
        raw = "Result: " + "[" * 5000 + "]" * 5000
        obligations, parsed = normalize_response(raw)

        assert parsed is False
        assert obligations[0]["obligation"] == PLACEHOLDER_TEXT


class TestHelpers:

    def test_strip_code_fences_leaves_plain_text(self):
        assert strip_code_fences("  [1]  ") == "[1]"
        assert strip_code_fences("```\n[1]\n```") == "[1]"

    def test_string_items_become_obligations(self):
        assert normalize_obligation("Return equipment") == {
            "obligation": "Return equipment",
            "section": None,
            "dueDate": None,
        }
        assert normalize_obligation(42) is None
