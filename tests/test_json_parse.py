"""Tests for lenient JSON extraction from model output."""

from __future__ import annotations

import pytest

from nova_orchestrator.utils.json_parse import parse_json_list, parse_json_object, strip_fences


class TestStripFences:
    def test_json_fence(self) -> None:
        assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_text_untouched(self) -> None:
        assert strip_fences("  hello  ") == "hello"


class TestParseJsonObject:
    def test_plain_object(self) -> None:
        assert parse_json_object('{"passed": true}') == {"passed": True}

    def test_object_inside_prose(self) -> None:
        text = 'Here is my review: {"passed": false, "issues": ["x"]} Hope it helps.'
        assert parse_json_object(text) == {"passed": False, "issues": ["x"]}

    def test_truncated_object(self) -> None:
        result = parse_json_object('{"passed": true, "issues": ["missing tit')
        assert result is not None
        assert result["passed"] is True

    @pytest.mark.parametrize("text", ["", "   ", "no json here", "[1, 2, 3]"])
    def test_no_object(self, text: str) -> None:
        assert parse_json_object(text) is None


class TestParseJsonList:
    def test_list_passthrough(self) -> None:
        steps = [{"id": "1"}]
        assert parse_json_list(steps) is steps

    def test_json_string(self) -> None:
        assert parse_json_list('[{"id": "1"}]') == [{"id": "1"}]

    def test_fenced_string(self) -> None:
        assert parse_json_list('```json\n["a", "b"]\n```') == ["a", "b"]

    @pytest.mark.parametrize("value", [None, 5, "", '{"id": "1"}'])
    def test_not_a_list(self, value: object) -> None:
        assert parse_json_list(value) is None
