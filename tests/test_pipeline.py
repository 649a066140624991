"""
Tests for pipeline.py.

Covers:
  - the full scenario product: four fixes, fixed order, correct values
  - independent failures per field / per image
  - writes mirrored into the cached products → a second run writes nothing
  - dry run, fatal catalog errors, pause after every write
"""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest

import config
import heuristics
from catalog.base import CatalogConnectionError, Product, ProductImage, UpstreamError
from generator import ContentGenerator
from pipeline import PatchApplier, RunStats, run_pipeline
from remediation import RemediationItem, TagPolicy

SPEAKER = "Wireless Bluetooth Speaker XL Pro"


def speaker(pid: int = 1, n_images: int = 1) -> Product:
    return Product(
        id=pid, title=SPEAKER,
        images=[ProductImage(id=pid * 10 + i, product_id=pid) for i in range(n_images)],
    )


def compliant(pid: int = 2) -> Product:
    return Product(
        id=pid, title="Ceramic Mug",
        images=[ProductImage(id=pid * 10, product_id=pid, alt="Ceramic mug")],
        tags="mug, SEO Optimized", product_type="Home & Garden",
        seo_title="Ceramic Mug | Premium Store", seo_description="Buy it.",
    )


def fake_client(products: list[Product]) -> MagicMock:
    client = MagicMock()
    client.name = "demo.myshopify.com"
    client.check_connection = AsyncMock(return_value={"name": "Demo"})
    client.fetch_all_products = AsyncMock(return_value=products)
    client.patch_image_alt = AsyncMock(return_value=None)
    client.patch_product_fields = AsyncMock(return_value=None)
    return client


def local_generator() -> ContentGenerator:
    return ContentGenerator(complete=AsyncMock(return_value=None), brand="Premium Store", use_ai=False)


def write_count(client) -> int:
    return client.patch_image_alt.await_count + client.patch_product_fields.await_count


@pytest.mark.asyncio
class TestScenario:
    async def test_all_four_fixes_in_order(self):
        client = fake_client([speaker()])
        order = []
        client.patch_image_alt.side_effect = lambda *a, **kw: order.append("alt")
        client.patch_product_fields.side_effect = lambda pid, **kw: order.append(next(iter(kw)))

        stats = await run_pipeline(client, local_generator(), delay=0)

        assert order == ["alt", "tags", "seo_title", "product_type"]
        client.patch_image_alt.assert_awaited_once_with(1, 10, SPEAKER)
        fields = [c.kwargs for c in client.patch_product_fields.await_args_list]
        assert fields[0] == {"tags": ", ".join(heuristics.seo_tags(SPEAKER, "Premium Store"))}
        assert fields[1] == {
            "seo_title": f"{SPEAKER} | Premium Store",
            "seo_description": heuristics.meta_description(SPEAKER, "Premium Store"),
        }
        assert fields[2] == {"product_type": "Electronics"}

        assert (stats.analyzed, stats.needing_fix) == (1, 1)
        assert (stats.alt_text, stats.tags, stats.meta_tags, stats.category) == (1, 1, 1, 1)
        assert stats.total_fixes == 4
        assert stats.errors == 0
        assert stats.issues[0]["deficiencies"] == [
            "missing_alt_text", "insufficient_tags", "missing_meta_tags", "missing_category",
        ]

    async def test_every_image_written(self):
        client = fake_client([speaker(n_images=3)])
        stats = await run_pipeline(client, local_generator(), delay=0)
        assert client.patch_image_alt.await_args_list == [
            call(1, 10, SPEAKER), call(1, 11, SPEAKER), call(1, 12, SPEAKER),
        ]
        assert stats.alt_text == 3


@pytest.mark.asyncio
class TestFailures:
    async def test_failed_write_does_not_block_others(self):
        client = fake_client([speaker(n_images=2)])
        client.patch_image_alt.side_effect = [UpstreamError("HTTP 500", status=500), None]

        async def fields(pid, **kw):
            if "tags" in kw:
                raise UpstreamError("HTTP 422", status=422)

        client.patch_product_fields.side_effect = fields

        stats = await run_pipeline(client, local_generator(), delay=0)

        assert stats.errors == 2
        assert (stats.alt_text, stats.tags, stats.meta_tags, stats.category) == (1, 0, 1, 1)
        failed = [f for f in stats.fixes if not f.ok]
        assert {(f.field, f.image_id) for f in failed} == {("alt_text", 10), ("tags", None)}

    async def test_failed_fix_stays_pending(self):
        product = speaker()
        client = fake_client([product])
        client.patch_image_alt.side_effect = UpstreamError("HTTP 500", status=500)
        await run_pipeline(client, local_generator(), delay=0)
        assert product.images[0].missing_alt
        assert product.product_type == "Electronics"

    async def test_connection_error_aborts(self):
        client = fake_client([speaker()])
        client.check_connection.side_effect = CatalogConnectionError("down")
        with pytest.raises(CatalogConnectionError):
            await run_pipeline(client, local_generator(), delay=0)
        client.fetch_all_products.assert_not_awaited()

    async def test_catalog_error_aborts_before_writes(self):
        client = fake_client([])
        client.fetch_all_products.side_effect = UpstreamError("HTTP 503", status=503)
        with pytest.raises(UpstreamError):
            await run_pipeline(client, local_generator(), delay=0)
        assert write_count(client) == 0


@pytest.mark.asyncio
class TestIdempotence:
    async def test_compliant_catalog_writes_nothing(self):
        client = fake_client([compliant(2), compliant(3)])
        stats = await run_pipeline(client, local_generator(), delay=0)
        assert stats.needing_fix == 0
        assert write_count(client) == 0

    async def test_second_run_writes_nothing(self):
        products = [speaker(1), compliant(2)]
        client = fake_client(products)

        await run_pipeline(client, local_generator(), delay=0)
        first = write_count(client)
        stats = await run_pipeline(client, local_generator(), delay=0)

        assert first == 4
        assert write_count(client) == first
        assert stats.needing_fix == 0

    async def test_no_new_tags_means_no_tag_write(self):
        product = speaker()
        product.tags = ", ".join(heuristics.seo_tags(SPEAKER, "Premium Store"))
        client = fake_client([product])
        stats = RunStats()
        applier = PatchApplier(client, local_generator(), stats, delay=0)

        await applier.apply(RemediationItem.for_product(product, TagPolicy(min_tags=10)))

        assert all("tags" not in c.kwargs for c in client.patch_product_fields.await_args_list)
        assert stats.tags == 0


@pytest.mark.asyncio
class TestRunModes:
    async def test_dry_run_only_classifies(self):
        client = fake_client([speaker(), compliant()])
        stats = await run_pipeline(client, local_generator(), delay=0, dry_run=True)
        assert (stats.analyzed, stats.needing_fix, stats.total_fixes) == (2, 1, 0)
        assert write_count(client) == 0
        assert stats.finished_at is not None

    async def test_max_pages_passed_through(self, monkeypatch):
        monkeypatch.setattr(config, "MAX_PAGES", 3)
        client = fake_client([])
        await run_pipeline(client, local_generator(), delay=0)
        client.fetch_all_products.assert_awaited_once_with(max_pages=3)

    async def test_pause_after_every_write(self):
        client = fake_client([speaker(n_images=2)])
        client.patch_product_fields.side_effect = UpstreamError("HTTP 500", status=500)
        with patch("pipeline.asyncio.sleep", new=AsyncMock()) as sleep:
            await run_pipeline(client, local_generator(), delay=0.5)
        assert sleep.await_count == write_count(client) == 5
        sleep.assert_awaited_with(0.5)


class TestPatchApplierDelay:
    def test_floor_enforced(self):
        assert PatchApplier(MagicMock(), MagicMock(), RunStats(), delay=0.1).delay == 0.5

    def test_zero_disables(self):
        assert PatchApplier(MagicMock(), MagicMock(), RunStats(), delay=0).delay == 0.0

    def test_default_from_config(self, monkeypatch):
        monkeypatch.setattr(config, "PATCH_DELAY_SECS", 2.0)
        assert PatchApplier(MagicMock(), MagicMock(), RunStats()).delay == 2.0

    @pytest.mark.parametrize("configured", [0.0, -1.0, 0.2])
    def test_configured_delay_never_below_floor(self, monkeypatch, configured):
        monkeypatch.setattr(config, "PATCH_DELAY_SECS", configured)
        assert PatchApplier(MagicMock(), MagicMock(), RunStats()).delay == 0.5


class TestRunStats:
    def test_summary_and_dict(self):
        stats = RunStats(analyzed=5, needing_fix=2, alt_text=3, tags=1, errors=1)
        summary = stats.summary()
        assert summary["total_fixes"] == 4
        assert summary["finished_at"] is None
        assert set(stats.to_dict()) == {"summary", "issues", "fixes"}
