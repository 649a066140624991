"""
pipeline.py — the remediation run.

  check connection → fetch catalog → classify → queue → patch, one write at a time

Failure policy:
  • CatalogConnectionError (health check)  → raised, run aborted
  • UpstreamError while reading the catalog → raised, run aborted (no partial data)
  • any failure on a single write           → counted in stats.errors, next field

Writes are strictly sequential with a fixed pause after each one. Every
successful write is mirrored into the cached Product, so a fixed deficiency
can't be re-applied later in the same run.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

import config
from catalog.base import Product
from catalog.shopify_client import ShopifyClient
from generator import ContentGenerator
from heuristics import merge_tags
from remediation import Deficiency, RemediationItem, TagPolicy, build_queue

logger = logging.getLogger(__name__)

MIN_PATCH_DELAY_SECS = 0.5


@dataclass
class FixRecord:
    product_id: int
    field: str                  # "alt_text" | "tags" | "meta_tags" | "category"
    value: str
    ok: bool
    image_id: Optional[int] = None
    error: str = ""


@dataclass
class RunStats:
    analyzed: int = 0
    needing_fix: int = 0
    alt_text: int = 0
    tags: int = 0
    meta_tags: int = 0
    category: int = 0
    errors: int = 0
    issues: list[dict] = field(default_factory=list)
    fixes: list[FixRecord] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def total_fixes(self) -> int:
        return self.alt_text + self.tags + self.meta_tags + self.category

    def summary(self) -> dict:
        return {
            "analyzed":    self.analyzed,
            "needing_fix": self.needing_fix,
            "alt_text":    self.alt_text,
            "tags":        self.tags,
            "meta_tags":   self.meta_tags,
            "category":    self.category,
            "errors":      self.errors,
            "total_fixes": self.total_fixes,
            "started_at":  self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    def to_dict(self) -> dict:
        return {
            "summary": self.summary(),
            "issues":  self.issues,
            "fixes":   [asdict(f) for f in self.fixes],
        }


class PatchApplier:
    """Applies one RemediationItem at a time, deficiency by deficiency."""

    def __init__(
        self,
        client: ShopifyClient,
        generator: ContentGenerator,
        stats: RunStats,
        delay: Optional[float] = None,
    ) -> None:
        self.client = client
        self.generator = generator
        self.stats = stats
        if delay is None:
            # Configured delays always respect the floor, even PATCH_DELAY_SECS=0
            self.delay = max(config.PATCH_DELAY_SECS, MIN_PATCH_DELAY_SECS)
        else:
            # Only an explicit delay=0 disables the pause (tests)
            self.delay = max(delay, MIN_PATCH_DELAY_SECS) if delay > 0 else 0.0

    async def apply(self, item: RemediationItem) -> None:
        product = item.product
        logger.info("Fixing %s — %s", product.id, product.title[:50])
        for deficiency in item.deficiencies:
            if deficiency is Deficiency.ALT_TEXT:
                await self._fix_alt_text(product, item.image_ids)
            elif deficiency is Deficiency.TAGS:
                await self._fix_tags(product)
            elif deficiency is Deficiency.META_TAGS:
                await self._fix_meta_tags(product)
            elif deficiency is Deficiency.CATEGORY:
                await self._fix_category(product)

    # ── Per-deficiency fixes ──────────────────────────────────────────────────

    async def _fix_alt_text(self, product: Product, image_ids: tuple[int, ...]) -> None:
        pending = [
            img for img in (product.image(i) for i in image_ids)
            if img is not None and img.missing_alt
        ]
        if not pending:
            return
        alt = await self.generator.alt_text(product)
        for img in pending:
            ok = await self._write(
                "alt_text", product, alt,
                self.client.patch_image_alt(product.id, img.id, alt),
                image_id=img.id,
            )
            if ok:
                img.alt = alt
                self.stats.alt_text += 1

    async def _fix_tags(self, product: Product) -> None:
        new_tags = await self.generator.tags(product)
        merged, added = merge_tags(product.tag_list(), new_tags)
        if not added:
            logger.info("  Product %s: no new tags to add", product.id)
            return
        ok = await self._write(
            "tags", product, merged,
            self.client.patch_product_fields(product.id, tags=merged),
        )
        if ok:
            product.tags = merged
            self.stats.tags += 1

    async def _fix_meta_tags(self, product: Product) -> None:
        title, description = await self.generator.meta_tags(product)
        ok = await self._write(
            "meta_tags", product, f"{title} / {description}",
            self.client.patch_product_fields(
                product.id, seo_title=title, seo_description=description,
            ),
        )
        if ok:
            product.seo_title = title
            product.seo_description = description
            self.stats.meta_tags += 1

    async def _fix_category(self, product: Product) -> None:
        category = await self.generator.category(product)
        ok = await self._write(
            "category", product, category,
            self.client.patch_product_fields(product.id, product_type=category),
        )
        if ok:
            product.product_type = category
            self.stats.category += 1

    # ── Write + bookkeeping ───────────────────────────────────────────────────

    async def _write(
        self,
        field_name: str,
        product: Product,
        value: str,
        call,
        image_id: Optional[int] = None,
    ) -> bool:
        """Await one write call, record the outcome, then pause. Never raises."""
        try:
            await call
        except Exception as exc:
            self.stats.errors += 1
            self.stats.fixes.append(FixRecord(
                product_id=product.id, field=field_name, value=value,
                ok=False, image_id=image_id, error=str(exc),
            ))
            logger.error(
                "  ❌ %s failed for product %s (%s): %s",
                field_name, product.id, product.title[:40], exc,
            )
            ok = False
        else:
            self.stats.fixes.append(FixRecord(
                product_id=product.id, field=field_name, value=value,
                ok=True, image_id=image_id,
            ))
            logger.info("  ✅ %s applied to product %s", field_name, product.id)
            ok = True
        await asyncio.sleep(self.delay)
        return ok


async def run_pipeline(
    client: ShopifyClient,
    generator: Optional[ContentGenerator] = None,
    *,
    max_pages: Optional[int] = None,
    policy: Optional[TagPolicy] = None,
    delay: Optional[float] = None,
    dry_run: bool = False,
) -> RunStats:
    """
    One full run against one store. Returns the run's counters.
    Raises CatalogConnectionError / UpstreamError when the catalog can't be read.
    """
    stats = RunStats()
    generator = generator or ContentGenerator()
    policy = policy or TagPolicy.from_config()
    if max_pages is None:
        max_pages = config.MAX_PAGES

    await client.check_connection()
    products = await client.fetch_all_products(max_pages=max_pages)
    stats.analyzed = len(products)

    queue = build_queue(products, policy)
    stats.needing_fix = len(queue)
    for item in queue:
        stats.issues.append({
            "product_id":   item.product.id,
            "title":        item.product.title,
            "deficiencies": [d.value for d in item.deficiencies],
            "image_ids":    list(item.image_ids),
        })
    logger.info("Analysed %d products — %d need fixes", stats.analyzed, stats.needing_fix)

    if dry_run:
        logger.info("Dry run — no changes written")
    else:
        applier = PatchApplier(client, generator, stats, delay=delay)
        for item in queue:
            await applier.apply(item)

    stats.finished_at = datetime.now(timezone.utc)
    return stats
