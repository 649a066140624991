"""
Provider Manager — builds the provider chain and runs prompts through it.

Keys are read from key_store (DB → .env fallback) when the chain is first
built, even when it comes out empty; resetting `_providers` to None (done by
settings_store when provider_order changes) rebuilds it on the next call.

Chain semantics:
  • providers are tried strictly in PROVIDER_ORDER, one call each, no retry
  • a failure (HTTP error, timeout, empty answer) is logged and the next
    provider is tried
  • the first non-empty answer is returned verbatim
  • when every provider fails, complete() returns None — callers fall back
    to the local heuristics. Nothing is raised past this module.
"""
from __future__ import annotations

import logging
from typing import Optional

import config
from providers.base import SHAPE_CHAT, SHAPE_GENERATIVE, ProviderConfig, TextProvider

logger = logging.getLogger(__name__)

# Module-level cache — None until built; reset to None by settings_store
_providers: Optional[list[TextProvider]] = None


def _default_specs() -> dict[str, tuple[str, str, str, str, dict]]:
    """name → (key_name, base url, shape, model, extra headers)"""
    from providers.chat_provider import GROQ_BASE_URL, OPENROUTER_BASE_URL, OPENROUTER_HEADERS
    from providers.gemini_provider import GEMINI_BASE_URL
    return {
        "gemini":     ("google_api_key",     GEMINI_BASE_URL,     SHAPE_GENERATIVE, config.GEMINI_MODEL,     {}),
        "groq":       ("groq_api_key",       GROQ_BASE_URL,       SHAPE_CHAT,       config.GROQ_MODEL,       {}),
        "openrouter": ("openrouter_api_key", OPENROUTER_BASE_URL, SHAPE_CHAT,       config.OPENROUTER_MODEL, OPENROUTER_HEADERS),
    }


async def build_provider_configs() -> list[ProviderConfig]:
    """ProviderConfig for every provider in PROVIDER_ORDER whose key is set."""
    import key_store

    specs = _default_specs()
    configs: list[ProviderConfig] = []
    for name in config.provider_names():
        spec = specs.get(name)
        if spec is None:
            logger.warning("Unknown provider %r in PROVIDER_ORDER — skipped", name)
            continue
        key_name, url, shape, model, headers = spec
        key = await key_store.get(key_name)
        if not key:
            logger.info("Skipped provider %s (%s not set)", name, key_name)
            continue
        configs.append(ProviderConfig(
            name=name, url=url, key=key, shape=shape, model=model, extra_headers=headers,
        ))
    return configs


def make_provider(cfg: ProviderConfig) -> TextProvider:
    if cfg.shape == SHAPE_GENERATIVE:
        from providers.gemini_provider import GeminiProvider
        return GeminiProvider(cfg)
    if cfg.shape == SHAPE_CHAT:
        from providers.chat_provider import ChatCompletionProvider
        return ChatCompletionProvider(cfg)
    raise ValueError(f"Unknown provider shape: {cfg.shape}")


async def _build_providers() -> list[TextProvider]:
    providers: list[TextProvider] = []
    for cfg in await build_provider_configs():
        try:
            p = make_provider(cfg)
        except Exception as exc:
            logger.warning("Could not load provider %s: %s", cfg.name, exc)
            continue
        providers.append(p)
        logger.info("Loaded provider: %s", p.full_name)

    if not providers:
        logger.warning(
            "No AI providers available — set google_api_key, groq_api_key or "
            "openrouter_api_key to enable AI content. Using local heuristics only."
        )
    return providers


async def get_providers() -> list[TextProvider]:
    global _providers
    if _providers is None:
        _providers = await _build_providers()
    return _providers


def _status_of(exc: Exception) -> Optional[int]:
    # openai.APIStatusError → status_code, google.genai.errors.APIError → code
    return getattr(exc, "status_code", None) or getattr(exc, "code", None)


async def complete(prompt: str, context: str = "") -> Optional[str]:
    """
    Run prompt through the provider chain.
    Returns the first successful answer verbatim, or None if every provider failed.
    `context` (e.g. "product 123") only goes into log lines.
    """
    try:
        providers = await get_providers()
    except Exception as exc:
        logger.error("Provider chain unavailable: %s", exc)
        return None

    for provider in providers:
        try:
            text = await provider.complete(prompt)
        except Exception as exc:
            logger.warning(
                "[%s] failed%s (status=%s): %s",
                provider.full_name, f" for {context}" if context else "", _status_of(exc), exc,
            )
            continue
        if text:
            logger.info("[%s] OK%s", provider.full_name, f" for {context}" if context else "")
            return text

    if providers:
        logger.warning("All AI providers failed%s", f" for {context}" if context else "")
    return None
