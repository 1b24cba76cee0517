from __future__ import annotations

import pytest

from briefing_agent.llm.json_parser import JSONParseError, parse_json_object


def test_plain_object():
    assert parse_json_object('{"a": 1}') == {"a": 1}


def test_fenced_object():
    assert parse_json_object('```json\n{"a": "b"}\n```') == {"a": "b"}


def test_object_inside_prose_with_braces_in_strings():
    text = 'Sure! Here it is: {"businessProblem": "use {braces} carefully", "x": 1} hope that helps'
    assert parse_json_object(text) == {"businessProblem": "use {braces} carefully", "x": 1}


def test_repairs_trailing_commas_and_python_literals():
    assert parse_json_object('Result: {"a": None, "b": True, "c": [1, 2,],}') == {
        "a": None,
        "b": True,
        "c": [1, 2],
    }


@pytest.mark.parametrize("text", ["", "   ", "no json at all", '{"a": 1', "[1, 2, 3]"])
def test_rejects_non_objects(text):
    with pytest.raises(JSONParseError):
        parse_json_object(text)
