"""
Google Gemini text provider — "generative" request shape, via the google-genai SDK.

Wire format (what the SDK sends for us):
  POST {url}/v1/models/{model}:generateContent
  { "contents": [{"parts": [{"text": ...}]}], "generationConfig": {...} }
Answer text lives at candidates[0].content.parts[0].text (response.text).
"""
from __future__ import annotations

import logging

from google import genai
from google.genai import types as genai_types

import config
from providers.base import SYSTEM_PROMPT, ProviderConfig, TextProvider

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/"


class GeminiProvider(TextProvider):

    def __init__(self, cfg: ProviderConfig) -> None:
        super().__init__(cfg)
        # Force v1 (stable) API; timeout is in milliseconds
        self._client = genai.Client(
            api_key=cfg.key,
            http_options=genai_types.HttpOptions(
                api_version="v1",
                base_url=cfg.url or GEMINI_BASE_URL,
                timeout=int(config.REQUEST_TIMEOUT_SECS * 1000),
            ),
        )

    async def complete(self, prompt: str) -> str:
        response = await self._client.aio.models.generate_content(
            model=self.config.model,
            contents=f"{SYSTEM_PROMPT}\n\n{prompt}",
            config=genai_types.GenerateContentConfig(
                temperature=0.7,
                max_output_tokens=2048,
            ),
        )
        text = (response.text or "").strip()
        if not text:
            raise RuntimeError(f"[{self.full_name}] empty response")
        return text
