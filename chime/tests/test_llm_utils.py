"""Tests for parsing JSON out of model responses."""

from chime.common.llm_utils import parse_llm_json, strip_code_fences


def test_plain_json():
    assert parse_llm_json('{"title": "Deploy plan"}') == {"title": "Deploy plan"}


def test_fenced_json():
    raw = '```json\n{"title": "Deploy plan", "content": "- ship it"}\n```'
    assert parse_llm_json(raw) == {"title": "Deploy plan", "content": "- ship it"}


def test_json_with_preamble():
    raw = 'Here is the insight:\n{"title": "Blocker", "content": "auth is down"}\nHope it helps.'
    assert parse_llm_json(raw)["title"] == "Blocker"


def test_not_json():
    assert parse_llm_json("Just some prose.") == {}


def test_non_object_json():
    assert parse_llm_json("[1, 2, 3]") == {}


def test_empty():
    assert parse_llm_json("") == {}


def test_strip_code_fences_leaves_plain_text():
    assert strip_code_fences("no fences here") == "no fences here"
