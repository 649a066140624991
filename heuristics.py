"""
heuristics.py — deterministic, content-free fallbacks for every field.

Used when no AI provider is configured, when the whole provider chain fails,
or when a provider answer can't be parsed. Given a non-empty title nothing
here returns an empty string or list.
"""
from __future__ import annotations

import re
from collections import Counter

ALT_TEXT_MAX_WORDS = 10
TAG_TOP_K          = 4
MIN_TAG_WORD_LEN   = 4          # words of length > 3

META_TITLE_MAX       = 57       # titles up to this length get the suffix as-is
META_TITLE_CUT       = 45
META_DESCRIPTION_MAX = 160

BOILERPLATE_TAGS = ("SEO Optimized", "Quality Product")

DEFAULT_CATEGORY = "General Products"

# First match wins — order matters ("smart watch" is Electronics, not Fashion)
CATEGORY_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("Electronics",       ("phone", "watch", "charger", "smart", "digital", "bluetooth", "battery", "usb")),
    ("Home & Garden",     ("home", "kitchen", "bathroom", "holder", "garden", "light", "decanter", "slicer")),
    ("Fashion",           ("clothing", "jacket", "fashion", "wear", "bracelet", "necklace")),
    ("Health & Beauty",   ("beauty", "massage", "fitness", "health", "trimmer", "vacuum")),
    ("Sports & Outdoors", ("sport", "game", "ball", "fitness")),
    ("Automotive",        ("car", "auto", "vehicle")),
    ("Toys & Games",      ("toy", "game", "children", "kids", "blocks")),
    ("Tools",             ("tool", "equipment", "razor")),
]

KNOWN_CATEGORIES = tuple(name for name, _ in CATEGORY_RULES) + (DEFAULT_CATEGORY,)

_PUNCT_RE = re.compile(r"[^\w\s-]")
_TAG_RE   = re.compile(r"<[^>]+>")


def _words(text: str) -> list[str]:
    return _PUNCT_RE.sub("", text).split()


def strip_html(html: str) -> str:
    return " ".join(_TAG_RE.sub(" ", html or "").split())


def alt_text(title: str) -> str:
    words = _words(title)[:ALT_TEXT_MAX_WORDS]
    if words:
        return " ".join(words)
    return title.strip() or "Product image"


def seo_tags(title: str, brand: str, k: int = TAG_TOP_K) -> list[str]:
    """Top-k frequent title words (ties by first occurrence) + boilerplate tags."""
    counts = Counter(w for w in _words(title.lower()) if len(w) >= MIN_TAG_WORD_LEN)
    tags = [word for word, _ in counts.most_common(k)]
    return dedupe_tags(tags + list(BOILERPLATE_TAGS) + ([brand] if brand else []))


def meta_title(title: str, suffix: str) -> str:
    if len(title) <= META_TITLE_MAX:
        return f"{title} | {suffix}"
    return f"{title[:META_TITLE_CUT]}... | {suffix}"


def meta_description(title: str, brand: str) -> str:
    text = (
        f"Buy {title} at the best price with guaranteed quality. "
        f"Fast and secure delivery from {brand}. Shop now!"
    )
    if len(text) > META_DESCRIPTION_MAX:
        return text[:META_DESCRIPTION_MAX - 3] + "..."
    return text


def category(title: str) -> str:
    lowered = title.lower()
    for name, keywords in CATEGORY_RULES:
        if any(kw in lowered for kw in keywords):
            return name
    return DEFAULT_CATEGORY


def match_category(answer: str) -> str | None:
    """Return the known category named by a free-text answer, if any."""
    cleaned = answer.strip().strip(".\"'").lower()
    for name in KNOWN_CATEGORIES:
        if cleaned == name.lower():
            return name
    return None


def merge_tags(current: list[str], new: list[str]) -> tuple[str, list[str]]:
    """
    Append tags from `new` that aren't already present (case-insensitive).
    Returns (comma-joined tag string, tags actually added).
    """
    seen = {t.lower() for t in current}
    added = []
    for tag in new:
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            added.append(tag)
    return ", ".join(current + added), added


def dedupe_tags(tags: list[str]) -> list[str]:
    seen: set[str] = set()
    out = []
    for tag in tags:
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            out.append(tag)
    return out
