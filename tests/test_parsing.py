"""Tests for output parsing helpers."""

import pytest

from agent_tuner.parsing import canonical_json, extract_number, parse_output, select_field


class TestParseOutput:
    """parse_output"""

    def test_fenced_json(self):
        assert parse_output('Here:\n```json\n{"score": 7}\n```') == {"score": 7}

    def test_plain_fence(self):
        assert parse_output('```\n[1, 2]\n```') == [1, 2]

    def test_bare_json(self):
        assert parse_output("7") == 7

    def test_text_stays_text(self):
        assert parse_output("positive") == "positive"

    def test_non_strings_pass_through(self):
        value = {"score": 1}
        assert parse_output(value) is value


class TestExtractNumber:
    """extract_number"""

    @pytest.mark.parametrize("value,expected", [
        (7, 7.0),
        (" 7.5 ", 7.5),
        ({"score": 3}, 3.0),
        ({"value": "4"}, 4.0),
        ({"result": {"score": 2}}, 2.0),
        ("8 out of 10", 8.0),
        ("7.5 points", 7.5),
        ("-3/5", -3.0),
        (".5 stars", 0.5),
    ])
    def test_parsed(self, value, expected):
        assert extract_number(value) == expected

    @pytest.mark.parametrize("value", [None, True, "seven", "nan", "inf", {"label": 1}, [1]])
    def test_unparsable(self, value):
        assert extract_number(value) is None


class TestFieldsAndCanonicalJson:
    """select_field / canonical_json"""

    def test_select_field(self):
        assert select_field({"score": 3, "label": "x"}, "label") == "x"
        assert select_field(5, "label") == 5
        assert select_field({"score": 3}, None) == {"score": 3}

    def test_canonical_json_ignores_key_order(self):
        assert canonical_json({"b": 1, "a": 2}) == canonical_json({"a": 2, "b": 1})
