"""
Shopify Admin REST catalog client.

Endpoints used (all authenticated with X-Shopify-Access-Token):
  GET  /admin/api/{version}/shop.json                          — health check
  GET  /admin/api/{version}/products.json?limit=N[&page_info=C] — catalog pages
  PUT  /admin/api/{version}/products/{pid}/images/{iid}.json    — image alt text
  PUT  /admin/api/{version}/products/{pid}.json                 — product fields

Pagination is cursor-based: the next cursor is the page_info parameter of the
Link header entry marked rel="next". When page_info is present Shopify only
accepts `limit` alongside it.

No retries and no batching — one call in flight at a time. Rate limiting is
the caller's job (see pipeline.PatchApplier).
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Mapping, Optional

import aiohttp

import config
from catalog.base import CatalogConnectionError, Product, UpstreamError

logger = logging.getLogger(__name__)

# Product fields the write endpoint accepts from the pipeline
WRITABLE_FIELDS = ("tags", "seo_title", "seo_description", "product_type")

_PAGE_INFO_RE = re.compile(r"page_info=([^&>]+)")


class ShopifyClient:

    def __init__(
        self,
        store_url: str,
        access_token: str,
        api_version: Optional[str] = None,
        page_size: Optional[int] = None,
        timeout_secs: Optional[float] = None,
    ) -> None:
        if not store_url.startswith("http"):
            store_url = f"https://{store_url}"
        self.store_url   = store_url.rstrip("/")
        self.api_version = api_version or config.SHOPIFY_API_VERSION
        self.page_size   = min(max(page_size or config.PAGE_SIZE, 1), 250)
        self._timeout    = aiohttp.ClientTimeout(total=timeout_secs or config.REQUEST_TIMEOUT_SECS)
        self._headers    = {
            "X-Shopify-Access-Token": access_token,
            "Content-Type":           "application/json",
        }

    @property
    def name(self) -> str:
        return self.store_url.removeprefix("https://").removeprefix("http://")

    def _url(self, path: str) -> str:
        return f"{self.store_url}/admin/api/{self.api_version}/{path}"

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def check_connection(self) -> dict:
        """
        Single lightweight read. Returns the shop record.
        Raises CatalogConnectionError if the store does not answer with 2xx.
        """
        try:
            status, data, _ = await self._request("GET", "shop.json")
        except UpstreamError as exc:
            raise CatalogConnectionError(f"Connection to {self.name} failed: {exc}") from exc
        if not 200 <= status < 300:
            raise CatalogConnectionError(f"Connection to {self.name} failed: HTTP {status}")
        shop = (data or {}).get("shop") or {}
        logger.info("Connected to %s (%s)", shop.get("name", "unnamed shop"), self.name)
        return shop

    async def fetch_all_products(self, max_pages: Optional[int] = None) -> list[Product]:
        """
        Page through the whole catalog.

        Any non-2xx page raises UpstreamError and nothing is returned —
        classifying against a partial catalog would mis-count deficiencies.
        `max_pages` (None/0 = unlimited) caps run cost; hitting it is logged.
        """
        products: list[Product] = []
        page_info: Optional[str] = None
        pages = 0

        while True:
            params: dict[str, str] = {"limit": str(self.page_size)}
            if page_info:
                params["page_info"] = page_info

            status, data, headers = await self._request("GET", "products.json", params=params)
            if not 200 <= status < 300:
                raise UpstreamError(
                    f"Catalog read failed on page {pages + 1}: HTTP {status}", status=status
                )

            for raw in (data or {}).get("products", []):
                products.append(Product.from_api(raw))
            pages += 1

            page_info = _next_page_info(headers.get("Link", ""))
            if not page_info:
                break
            if max_pages and pages >= max_pages:
                logger.warning(
                    "Stopped after %d catalog pages (max_pages cap) — %d products loaded",
                    pages, len(products),
                )
                break

        logger.info("Fetched %d products in %d page(s) from %s", len(products), pages, self.name)
        return products

    # ── Writes ────────────────────────────────────────────────────────────────

    async def patch_image_alt(self, product_id: int, image_id: int, alt: str) -> None:
        payload = {"image": {"id": image_id, "alt": alt}}
        status, _, _ = await self._request(
            "PUT", f"products/{product_id}/images/{image_id}.json", json=payload,
        )
        if not 200 <= status < 300:
            raise UpstreamError(
                f"Image {image_id} of product {product_id}: HTTP {status}", status=status
            )

    async def patch_product_fields(self, product_id: int, **fields: str) -> None:
        """Write any subset of WRITABLE_FIELDS in a single PUT."""
        if not fields:
            raise ValueError("patch_product_fields needs at least one field")
        unknown = set(fields) - set(WRITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported product fields: {', '.join(sorted(unknown))}")

        payload = {"product": {"id": product_id, **fields}}
        status, _, _ = await self._request("PUT", f"products/{product_id}.json", json=payload)
        if not 200 <= status < 300:
            raise UpstreamError(
                f"Product {product_id} ({', '.join(fields)}): HTTP {status}", status=status
            )

    # ── HTTP helper ───────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> tuple[int, Optional[dict], Mapping[str, str]]:
        """
        Single HTTP call. Returns (status, parsed JSON or None, headers).
        Transport failures and timeouts are raised as UpstreamError(status=None).
        """
        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method,
                    self._url(path),
                    headers=self._headers,
                    params=params,
                    json=json,
                    timeout=self._timeout,
                ) as resp:
                    if 200 <= resp.status < 300:
                        data = await resp.json()
                    else:
                        text = await resp.text()
                        logger.warning(
                            "Shopify %s %s → %d: %s", method, path, resp.status, text[:200]
                        )
                        data = None
                    return resp.status, data, resp.headers
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise UpstreamError(f"Shopify {method} {path} failed: {exc!r}") from exc


# ── Helpers ────────────────────────────────────────────────────────────────────

def _next_page_info(link_header: str) -> Optional[str]:
    """Extract the page_info cursor of the rel="next" entry of a Link header."""
    for part in link_header.split(","):
        if 'rel="next"' in part:
            match = _PAGE_INFO_RE.search(part)
            if match:
                return match.group(1)
    return None
