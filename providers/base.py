"""
Shared types and base class for all text providers, plus the structured
response parser used by the content generator.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable

logger = logging.getLogger(__name__)

# Request/response shapes
SHAPE_GENERATIVE = "generative"     # Gemini generateContent
SHAPE_CHAT       = "chat"           # OpenAI-compatible chat completions

SYSTEM_PROMPT = (
    "You are an e-commerce SEO copywriter for a Shopify store. "
    "Follow the requested output format exactly — no markdown, no commentary."
)


class ParseError(ValueError):
    """A provider answer did not contain the expected structured data."""


@dataclass(frozen=True)
class ProviderConfig:
    """One entry of the provider chain. List order = fallback priority."""
    name: str                   # e.g. "groq"
    url: str                    # API base URL
    key: str = field(repr=False)
    shape: str = SHAPE_CHAT
    model: str = ""
    extra_headers: dict = field(default_factory=dict, compare=False)


class TextProvider(ABC):
    """Base class all text providers must implement."""

    def __init__(self, cfg: ProviderConfig) -> None:
        self.config = cfg

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def full_name(self) -> str:
        return f"{self.config.name}/{self.config.model}"

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """
        Return the provider's text answer for prompt.
        Must raise on any failure (HTTP error, empty answer) — never return "".
        """
        ...


# ── Structured parsing ────────────────────────────────────────────────────────

def _strip_fences(raw: str) -> str:
    text = raw.strip()
    # Strip ```json ... ``` or ``` ... ``` fences if present
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:])
    return text


def extract_json_object(text: str) -> str | None:
    """
    Return the first balanced {...} substring of text, or None.
    Braces inside JSON strings are ignored.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return None


def parse_structured(raw: str, required: Iterable[str] = ()) -> dict:
    """
    Strict-then-lenient parse of a JSON object out of a model answer.

      1. the whole answer (markdown fences stripped) must be a JSON object
      2. otherwise the first balanced {...} substring is parsed, looked up in
         the stripped text first and then in the raw answer (single-line fences)
    The result must contain every key in `required`.
    Raises ParseError on any failure.
    """
    text = _strip_fences(raw or "")
    data = None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        candidate = extract_json_object(text) or extract_json_object(raw or "")
        if candidate is not None:
            try:
                data = json.loads(candidate)
            except json.JSONDecodeError as exc:
                raise ParseError(f"JSON parse error: {exc}") from exc

    if not isinstance(data, dict):
        raise ParseError(f"No JSON object in response: {text[:120]!r}")

    missing = [k for k in required if k not in data]
    if missing:
        raise ParseError(f"Missing keys: {', '.join(missing)}")
    return data
