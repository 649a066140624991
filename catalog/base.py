"""
Shared catalog types and errors.

Every product the pipeline touches is a Product parsed from the Shopify
Admin REST payload. The pipeline never re-fetches within a run, so writes
are reflected back into these objects by the patch applier.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


class UpstreamError(RuntimeError):
    """Non-2xx (or transport failure) from the catalog or a provider."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class CatalogConnectionError(ConnectionError):
    """The initial health check did not succeed — the run is aborted."""


@dataclass
class ProductImage:
    id: int
    product_id: int             # back-reference, the product owns the image
    alt: Optional[str] = None

    @property
    def missing_alt(self) -> bool:
        return not (self.alt or "").strip()


@dataclass
class Product:
    id: int
    title: str
    body_html: str = ""
    images: list[ProductImage] = field(default_factory=list)
    variants: list[dict] = field(default_factory=list)
    tags: str = ""                      # comma-joined, order-preserving
    product_type: str = ""              # the category
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None

    @classmethod
    def from_api(cls, raw: dict) -> "Product":
        pid = raw["id"]
        images = [
            ProductImage(id=img["id"], product_id=img.get("product_id", pid), alt=img.get("alt"))
            for img in raw.get("images") or []
        ]
        return cls(
            id=pid,
            title=(raw.get("title") or "").strip(),
            body_html=raw.get("body_html") or "",
            images=images,
            variants=list(raw.get("variants") or []),
            tags=raw.get("tags") or "",
            product_type=raw.get("product_type") or "",
            seo_title=raw.get("seo_title") or None,
            seo_description=raw.get("seo_description") or None,
        )

    def tag_list(self) -> list[str]:
        return [t.strip() for t in self.tags.split(",") if t.strip()]

    @property
    def price(self) -> Optional[str]:
        if self.variants:
            return self.variants[0].get("price")
        return None

    def image(self, image_id: int) -> Optional[ProductImage]:
        for img in self.images:
            if img.id == image_id:
                return img
        return None
