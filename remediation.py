"""
remediation.py — detect missing SEO metadata on a product.

classify() is pure: it only looks at the Product it is given. The tag check
is intentionally crude (any tag containing "seo", "quality" or "optimized"
counts as SEO-ready); the keyword list and an optional minimum tag count are
policy parameters, see TagPolicy.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable, Optional

import config
from catalog.base import Product


class Deficiency(enum.Enum):
    ALT_TEXT  = "missing_alt_text"
    TAGS      = "insufficient_tags"
    META_TAGS = "missing_meta_tags"
    CATEGORY  = "missing_category"


# Remediation always runs in this order, whatever order detection found them in
REMEDIATION_ORDER = (
    Deficiency.ALT_TEXT,
    Deficiency.TAGS,
    Deficiency.META_TAGS,
    Deficiency.CATEGORY,
)


@dataclass(frozen=True)
class TagPolicy:
    keywords: tuple[str, ...] = ("seo", "quality", "optimized")
    min_tags: int = 0           # 0 → keyword check only

    @classmethod
    def from_config(cls) -> "TagPolicy":
        return cls(keywords=config.tag_keywords() or cls.keywords, min_tags=config.MIN_TAGS)

    def is_satisfied(self, tags: list[str]) -> bool:
        lowered = [t.lower() for t in tags]
        has_keyword = any(kw in tag for tag in lowered for kw in self.keywords)
        if not has_keyword:
            return False
        return len(tags) >= self.min_tags


def classify(
    product: Product,
    policy: Optional[TagPolicy] = None,
) -> dict[Deficiency, tuple[int, ...]]:
    """
    Map a product to its deficiencies.

    The value for ALT_TEXT is the tuple of image ids lacking alt text; every
    other deficiency maps to an empty tuple.
    """
    policy = policy or TagPolicy()
    found: dict[Deficiency, tuple[int, ...]] = {}

    missing_alt = tuple(img.id for img in product.images if img.missing_alt)
    if missing_alt:
        found[Deficiency.ALT_TEXT] = missing_alt

    if not policy.is_satisfied(product.tag_list()):
        found[Deficiency.TAGS] = ()

    if not (product.seo_title or "").strip() or not (product.seo_description or "").strip():
        found[Deficiency.META_TAGS] = ()

    if not (product.product_type or "").strip():
        found[Deficiency.CATEGORY] = ()

    return found


@dataclass
class RemediationItem:
    """A product and the deficiencies still pending on it for this run."""
    product: Product
    deficiencies: list[Deficiency] = field(default_factory=list)
    image_ids: tuple[int, ...] = ()

    @classmethod
    def for_product(cls, product: Product, policy: Optional[TagPolicy] = None) -> "RemediationItem":
        found = classify(product, policy)
        return cls(
            product=product,
            deficiencies=[d for d in REMEDIATION_ORDER if d in found],
            image_ids=found.get(Deficiency.ALT_TEXT, ()),
        )

    @property
    def is_empty(self) -> bool:
        return not self.deficiencies


def build_queue(
    products: Iterable[Product],
    policy: Optional[TagPolicy] = None,
) -> list[RemediationItem]:
    """Classify every product; keep only the ones with something to fix."""
    queue = []
    for product in products:
        item = RemediationItem.for_product(product, policy)
        if not item.is_empty:
            queue.append(item)
    return queue
