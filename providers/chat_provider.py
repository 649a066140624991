"""
OpenAI-compatible chat-completion provider — used for Groq and OpenRouter.

Both expose the OpenAI wire format at their own base URL:
  POST {url}/chat/completions   Authorization: Bearer {key}
  { "model": ..., "messages": [...], "max_tokens": ... }
Answer text lives at choices[0].message.content.

Groq:       https://api.groq.com/openai/v1   (free key at console.groq.com)
OpenRouter: https://openrouter.ai/api/v1     (one key, hundreds of models)
"""
from __future__ import annotations

import logging

import openai

import config
from providers.base import SYSTEM_PROMPT, ProviderConfig, TextProvider

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# OpenRouter uses these to attribute traffic on its dashboard
OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://github.com/shopify-seo-autofix",
    "X-Title":      "Shopify SEO Autofix",
}


class ChatCompletionProvider(TextProvider):

    def __init__(self, cfg: ProviderConfig, max_tokens: int = 500) -> None:
        super().__init__(cfg)
        self._max_tokens = max_tokens
        # One attempt per provider — the chain itself is the retry strategy
        self._client = openai.AsyncOpenAI(
            api_key=cfg.key,
            base_url=cfg.url,
            default_headers=cfg.extra_headers or None,
            timeout=config.REQUEST_TIMEOUT_SECS,
            max_retries=0,
        )

    async def complete(self, prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self.config.model,
            max_tokens=self._max_tokens,
            temperature=0.7,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user",   "content": prompt},
            ],
        )
        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not text:
            raise RuntimeError(f"[{self.full_name}] empty response")
        return text
