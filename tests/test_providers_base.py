"""
Tests for providers/base.py — ProviderConfig and the structured response parser.

Covers:
  - ProviderConfig never shows its key
  - parse_structured: plain JSON, fenced JSON, JSON buried in prose,
    braces inside strings, missing keys, no JSON at all
"""
from __future__ import annotations

import pytest

from providers.base import (
    SHAPE_CHAT,
    ParseError,
    ProviderConfig,
    TextProvider,
    extract_json_object,
    parse_structured,
)


class TestProviderConfig:
    def test_key_hidden_from_repr(self):
        cfg = ProviderConfig(name="groq", url="https://x", key="gsk-secret", model="m")
        assert "gsk-secret" not in repr(cfg)
        assert cfg.shape == SHAPE_CHAT

    def test_full_name(self):
        class Dummy(TextProvider):
            async def complete(self, prompt: str) -> str:
                return "ok"

        p = Dummy(ProviderConfig(name="groq", url="u", key="k", model="llama"))
        assert p.name == "groq"
        assert p.full_name == "groq/llama"


class TestParseStructured:
    def test_plain_json(self):
        assert parse_structured('{"title": "A", "description": "B"}') == {
            "title": "A", "description": "B",
        }

    def test_markdown_fenced(self):
        raw = '```json\n{"title": "A"}\n```'
        assert parse_structured(raw) == {"title": "A"}

    def test_single_line_fence(self):
        raw = '```json {"title": "XL Pro Speaker", "description": "Big sound."}```'
        assert parse_structured(raw, required=("title", "description")) == {
            "title": "XL Pro Speaker", "description": "Big sound.",
        }

    def test_json_inside_prose(self):
        raw = 'Sure! Here you go: {"title": "Mug", "description": "Nice"} Hope that helps.'
        assert parse_structured(raw, required=("title", "description"))["title"] == "Mug"

    def test_braces_inside_strings(self):
        raw = 'Result -> {"title": "Set {3 pcs}", "description": "a } b"} end'
        assert parse_structured(raw)["title"] == "Set {3 pcs}"

    def test_missing_required_key(self):
        with pytest.raises(ParseError, match="description"):
            parse_structured('{"title": "A"}', required=("title", "description"))

    @pytest.mark.parametrize("raw", ["", "no json here", "[1, 2]", '{"title": '])
    def test_unparsable(self, raw):
        with pytest.raises(ParseError):
            parse_structured(raw)

    def test_parse_error_is_value_error(self):
        assert issubclass(ParseError, ValueError)


class TestExtractJsonObject:
    def test_first_balanced_object(self):
        assert extract_json_object('x {"a": {"b": 1}} y {"c": 2}') == '{"a": {"b": 1}}'

    def test_none_when_unbalanced(self):
        assert extract_json_object('{"a": 1') is None
