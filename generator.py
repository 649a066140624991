"""
generator.py — replacement content for one deficiency at a time.

Every public method returns usable text: the AI provider chain is asked
first (when enabled), and any failure — chain exhausted, unparsable or
empty answer — falls back to heuristics.py for that field only.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

import config
import heuristics
from catalog.base import Product
from providers.base import ParseError, parse_structured

logger = logging.getLogger(__name__)

CompleteFn = Callable[..., Awaitable[Optional[str]]]

ALT_TEXT_MAX        = 100
AI_TAGS_MAX         = 5
AI_META_TITLE_MAX   = 60
DESCRIPTION_CONTEXT = 200

# ── Prompts ────────────────────────────────────────────────────────────────────

_ALT_PROMPT = (
    "Write SEO-optimised image alt text for this product. "
    "At most 8 words, describe what the image shows. "
    "Reply with the alt text only.\n\n{context}"
)

_TAGS_PROMPT = (
    "Suggest {n} SEO tags for this product, focused on discovery and its niche. "
    "Reply with the tags only, separated by commas.\n\n{context}"
)

_META_PROMPT = (
    "Write SEO meta tags for this product.\n"
    'Reply with JSON only: {{"title": "SEO title, max 60 chars", '
    '"description": "compelling meta description, max 155 chars"}}\n\n{context}'
)

_CATEGORY_PROMPT = (
    "Pick the single best category for this product from this list: {choices}.\n"
    "Reply with the category name only.\n\n{context}"
)


def product_context(product: Product) -> str:
    description = heuristics.strip_html(product.body_html)[:DESCRIPTION_CONTEXT]
    return (
        f"Title: {product.title}\n"
        f"Description: {description or 'none'}\n"
        f"Price: {product.price or 'N/A'}\n"
        f"Tags: {product.tags or 'none'}\n"
        f"Type: {product.product_type or 'not set'}"
    )


def _clean_line(text: str) -> str:
    first = next((ln for ln in text.strip().splitlines() if ln.strip()), "")
    # surrounding quotes only; apostrophes inside the text stay
    return first.strip().strip("\"'").strip()


class ContentGenerator:

    def __init__(
        self,
        complete: Optional[CompleteFn] = None,
        brand: Optional[str] = None,
        use_ai: Optional[bool] = None,
    ) -> None:
        if complete is None:
            from providers import manager
            complete = manager.complete
        self._complete = complete
        self.brand  = brand or config.BRAND_NAME
        self.use_ai = config.USE_AI if use_ai is None else use_ai

    async def _ask(self, prompt: str, product: Product) -> Optional[str]:
        if not self.use_ai:
            return None
        try:
            return await self._complete(prompt, context=f"product {product.id}")
        except Exception as exc:
            # complete() shouldn't raise, but a custom one might
            logger.error("AI call crashed for product %s: %s", product.id, exc)
            return None

    # ── Fields ────────────────────────────────────────────────────────────────

    async def alt_text(self, product: Product) -> str:
        raw = await self._ask(_ALT_PROMPT.format(context=product_context(product)), product)
        text = _clean_line(raw or "")[:ALT_TEXT_MAX].strip()
        if text:
            return text
        logger.info("Product %s: basic alt text used", product.id)
        return heuristics.alt_text(product.title)

    async def tags(self, product: Product) -> list[str]:
        """New tags to add. Always ends with the boilerplate SEO tags."""
        raw = await self._ask(
            _TAGS_PROMPT.format(n=AI_TAGS_MAX, context=product_context(product)), product,
        )
        ai_tags = [
            t.strip().strip("\"'").strip()
            for t in (raw or "").replace("\n", ",").split(",")
        ]
        ai_tags = [t for t in ai_tags if t][:AI_TAGS_MAX]
        if not ai_tags:
            logger.info("Product %s: basic tags used", product.id)
            return heuristics.seo_tags(product.title, self.brand)
        return heuristics.dedupe_tags(ai_tags + list(heuristics.BOILERPLATE_TAGS) + [self.brand])

    async def meta_tags(self, product: Product) -> tuple[str, str]:
        """(seo_title, seo_description) — each field falls back independently."""
        fallback_title = heuristics.meta_title(product.title, self.brand)
        fallback_desc  = heuristics.meta_description(product.title, self.brand)

        raw = await self._ask(_META_PROMPT.format(context=product_context(product)), product)
        if raw is None:
            logger.info("Product %s: basic meta tags used", product.id)
            return fallback_title, fallback_desc

        try:
            data = parse_structured(raw)
        except ParseError as exc:
            logger.info("Product %s: unparsable meta tags (%s), basic ones used", product.id, exc)
            return fallback_title, fallback_desc

        title = str(data.get("title") or "").strip()[:AI_META_TITLE_MAX]
        desc  = str(data.get("description") or "").strip()[:heuristics.META_DESCRIPTION_MAX]
        return title or fallback_title, desc or fallback_desc

    async def category(self, product: Product) -> str:
        choices = ", ".join(heuristics.KNOWN_CATEGORIES)
        raw = await self._ask(
            _CATEGORY_PROMPT.format(choices=choices, context=product_context(product)), product,
        )
        if raw:
            picked = heuristics.match_category(_clean_line(raw))
            if picked:
                return picked
            logger.info("Product %s: AI category %r not in the list", product.id, raw[:60])
        return heuristics.category(product.title)
