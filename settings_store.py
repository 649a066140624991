"""
settings_store.py — runtime-editable pipeline settings.

Priority order (same pattern as key_store.py):
  1. Database (set via `seo-autofix settings set`) — takes precedence
  2. Environment variable / .env file               — fallback / bootstrap

All settings are stored as strings in the DB and cast to the right type on read.
Writes are validated against the bounds in SETTINGS_META before they are
persisted, so a bad value never reaches the DB or the live config.
"""
from __future__ import annotations

import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

_db = None


def _get_db():
    global _db
    if _db is None:
        import database as db
        _db = db
    return _db


KNOWN_PROVIDERS = ("gemini", "groq", "openrouter")

# ── Setting definitions ────────────────────────────────────────────────────────
# key → env var, default, type, description, optional "min" / "max" bounds
# type: "str" | "int" | "float" | "bool" | "providers"

SETTINGS_META: dict[str, dict] = {
    "page_size": {
        "env": "PAGE_SIZE", "default": "250", "type": "int", "min": 1, "max": 250,
        "desc": "Products per catalog page (1–250)",
    },
    "max_pages": {
        "env": "MAX_PAGES", "default": "20", "type": "int", "min": 0,
        "desc": "Catalog pages read per run (0 = no cap)",
    },
    "patch_delay_secs": {
        "env": "PATCH_DELAY_SECS", "default": "0.5", "type": "float", "min": 0.5,
        "desc": "Pause after every write call (min 0.5)",
    },
    "provider_order": {
        "env": "PROVIDER_ORDER", "default": "gemini,groq,openrouter", "type": "providers",
        "desc": "AI provider fallback order",
    },
    "use_ai": {
        "env": "USE_AI", "default": "true", "type": "bool",
        "desc": "Ask AI providers before the local heuristics",
    },
    "brand_name": {
        "env": "BRAND_NAME", "default": "Premium Store", "type": "str",
        "desc": "Meta-title suffix and boilerplate tag",
    },
    "seo_tag_keywords": {
        "env": "SEO_TAG_KEYWORDS", "default": "seo,quality,optimized", "type": "str",
        "desc": "Tags containing any of these count as SEO-ready",
    },
    "min_tags": {
        "env": "MIN_TAGS", "default": "0", "type": "int", "min": 0,
        "desc": "Minimum tag count (0 = keyword check only)",
    },
    "run_interval_minutes": {
        "env": "RUN_INTERVAL_MINUTES", "default": "360", "type": "int", "min": 1,
        "desc": "Interval for the `schedule` command",
    },
}


def _cast(raw: str, typ: str) -> Any:
    if typ == "bool":
        return raw.strip().lower() in ("true", "1", "yes")
    if typ == "int":
        return int(raw.strip())
    if typ == "float":
        return float(raw.strip())
    # "str" and "providers" stay comma-joined strings; config parses them
    return raw.strip()


def validate(key: str, raw: str) -> Any:
    """Cast raw for key and check its bounds. Raises KeyError / ValueError."""
    meta = SETTINGS_META.get(key)
    if meta is None:
        raise KeyError(f"Unknown setting: {key}")

    value = _cast(raw, meta["type"])
    if "min" in meta and value < meta["min"]:
        raise ValueError(f"{key} must be ≥ {meta['min']}")
    if "max" in meta and value > meta["max"]:
        raise ValueError(f"{key} must be ≤ {meta['max']}")
    if meta["type"] == "providers":
        names = [n.strip().lower() for n in value.split(",") if n.strip()]
        if not names:
            raise ValueError("provider_order needs at least one provider")
        unknown = [n for n in names if n not in KNOWN_PROVIDERS]
        if unknown:
            raise ValueError(
                f"Unknown provider(s): {', '.join(unknown)} — choose from {', '.join(KNOWN_PROVIDERS)}"
            )
    return value


def _env_or_default(meta: dict) -> str:
    env_val = os.getenv(meta["env"], "").strip()
    return env_val if env_val else meta["default"]


async def get(key: str) -> Any:
    """Return the current value for a setting, DB first then env/default."""
    meta = SETTINGS_META.get(key)
    if meta is None:
        raise KeyError(f"Unknown setting: {key}")

    try:
        raw = await _get_db().get_setting(key)
        if raw is not None:
            return _cast(raw, meta["type"])
    except Exception as exc:
        logger.warning("settings_store: DB lookup failed for %s: %s", key, exc)

    return _cast(_env_or_default(meta), meta["type"])


async def get_raw(key: str) -> str:
    """Return raw string value (for display)."""
    raw = await _get_db().get_setting(key)
    return raw if raw is not None else _env_or_default(SETTINGS_META[key])


async def set(key: str, value: str, updated_by: str = "cli") -> None:
    """Validate, persist to DB and apply live to the config module."""
    validate(key, value)
    await _get_db().set_setting(key, value.strip(), updated_by)
    _apply_to_config(key, value, SETTINGS_META[key]["type"])


async def delete(key: str) -> None:
    """Remove a setting from DB (falls back to .env / default)."""
    meta = SETTINGS_META.get(key)
    if meta is None:
        raise KeyError(f"Unknown setting: {key}")
    await _get_db().delete_setting(key)
    _apply_to_config(key, _env_or_default(meta), meta["type"])


async def get_all() -> dict[str, str]:
    """Every setting as its raw string (source: DB or env/default)."""
    return {key: await get_raw(key) for key in SETTINGS_META}


def _apply_to_config(key: str, raw: str, typ: str) -> None:
    """Immediately update the live config module."""
    import config as cfg
    value = _cast(raw, typ)
    attr = key.upper()
    if hasattr(cfg, attr):
        setattr(cfg, attr, value)
        logger.info("settings_store: config.%s = %r (live)", attr, value)
    # Provider list depends on the order — rebuild on next use
    if key == "provider_order":
        import providers.manager as pm
        pm._providers = None
