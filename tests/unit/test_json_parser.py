"""Unit tests for JSON repair of completion responses."""

import pytest

from manual_kb.core.exceptions import ParseError
from manual_kb.utils.json_parser import extract_json_object, find_balanced_object


class TestExtractJsonObject:
    def test_plain_object(self):
        assert extract_json_object('{"terms": []}') == {"terms": []}

    def test_fenced_json_block(self):
        text = 'Here you go:\n```json\n{"schematic_detected": true}\n```\nThanks!'

        assert extract_json_object(text) == {"schematic_detected": True}

    def test_fence_without_language_tag(self):
        text = '```\n{"parts": [{"name": "Fan Motor"}]}\n```'

        assert extract_json_object(text)["parts"][0]["name"] == "Fan Motor"

    def test_object_embedded_in_prose(self):
        text = 'The analysis is {"schematic_detected": false, "detection_confidence": 0.1} as requested.'

        result = extract_json_object(text)

        assert result["detection_confidence"] == 0.1

    def test_braces_inside_strings_are_ignored(self):
        text = 'Result: {"description": "uses {braces} and \\"quotes\\"", "ok": true} end'

        result = extract_json_object(text)

        assert result["ok"] is True
        assert result["description"] == 'uses {braces} and "quotes"'

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input_raises(self, text):
        with pytest.raises(ParseError):
            extract_json_object(text)

    def test_prose_without_json_raises(self):
        with pytest.raises(ParseError):
            extract_json_object("I could not find any schematic on this page.")

    def test_top_level_array_is_rejected(self):
        with pytest.raises(ParseError):
            extract_json_object('["Contactor", "Fan Motor"]')

    def test_unterminated_object_raises(self):
        with pytest.raises(ParseError):
            extract_json_object('{"terms": ["TXV"')


class TestFindBalancedObject:
    def test_returns_first_complete_object(self):
        assert find_balanced_object('x {"a": {"b": 1}} y {"c": 2}') == '{"a": {"b": 1}}'

    def test_none_when_no_object(self):
        assert find_balanced_object("no braces here") is None
