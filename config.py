"""
Central configuration — reads from .env file.

Settings priority order:
  1. Database (set via `seo-autofix settings set`) — applied at startup
  2. Environment variable / .env file               — fallback / bootstrap

API keys follow the same priority via key_store.py.
settings_store.py writes directly to the module attributes below when a
setting is changed, so all code reading config.X always gets the latest value.
"""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Shopify store ─────────────────────────────────────────────────────────────
# Default single store. Additional stores are connected via `shops connect`
# and live in the shop_tokens table (see token_store.py).
# The access token itself is a secret → key_store ("shopify_access_token").
SHOPIFY_STORE_URL: str   = os.getenv("SHOPIFY_STORE_URL", "").strip().rstrip("/")
SHOPIFY_API_VERSION: str = os.getenv("SHOPIFY_API_VERSION", "2023-10")

# Products per catalog page (Shopify max is 250)
PAGE_SIZE: int = int(os.getenv("PAGE_SIZE", "250"))
# Cap on catalog pages read per run — 0 means no cap
MAX_PAGES: int = int(os.getenv("MAX_PAGES", "20"))

# Seconds to wait after every write call (Shopify REST bucket leaks 2 req/s)
PATCH_DELAY_SECS: float = float(os.getenv("PATCH_DELAY_SECS", "0.5"))

# Hard timeout for every outbound call (catalog and AI providers)
REQUEST_TIMEOUT_SECS: float = float(os.getenv("REQUEST_TIMEOUT_SECS", "30"))

# ── AI text providers ─────────────────────────────────────────────────────────
# Comma-separated fallback order. Providers without a key are skipped.
PROVIDER_ORDER: str = os.getenv("PROVIDER_ORDER", "gemini,groq,openrouter")
USE_AI: bool        = os.getenv("USE_AI", "true").lower() == "true"

GEMINI_MODEL: str     = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
GROQ_MODEL: str       = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
OPENROUTER_MODEL: str = os.getenv("OPENROUTER_MODEL", "meta-llama/llama-3.3-70b-instruct")

# ── Content policy ────────────────────────────────────────────────────────────
# Used as the meta-title suffix and as a boilerplate tag
BRAND_NAME: str = os.getenv("BRAND_NAME", "Premium Store")

# A product's tags count as SEO-ready when any tag contains one of these
SEO_TAG_KEYWORDS: str = os.getenv("SEO_TAG_KEYWORDS", "seo,quality,optimized")
# Additionally require at least this many tags — 0 disables the check
MIN_TAGS: int = int(os.getenv("MIN_TAGS", "0"))

# ── Reports & scheduling ──────────────────────────────────────────────────────
REPORT_DIR: str = os.getenv("REPORT_DIR", "reports")
# `schedule` command re-runs the pipeline every N minutes
RUN_INTERVAL_MINUTES: int = int(os.getenv("RUN_INTERVAL_MINUTES", "360"))

# ── Telegram run notifications (optional) ─────────────────────────────────────
# The bot token is a secret: key_store "telegram_bot_token" / TELEGRAM_BOT_TOKEN

# Comma-separated Telegram user IDs that receive run summaries
ADMIN_IDS: set[int] = {
    int(x.strip())
    for x in os.getenv("ADMIN_IDS", "").split(",")
    if x.strip().isdigit()
}


def provider_names() -> list[str]:
    """PROVIDER_ORDER as a clean lowercase list."""
    return [p.strip().lower() for p in PROVIDER_ORDER.split(",") if p.strip()]


def tag_keywords() -> tuple[str, ...]:
    return tuple(k.strip().lower() for k in SEO_TAG_KEYWORDS.split(",") if k.strip())


async def apply_db_settings() -> None:
    """
    Load all DB-persisted settings and apply them to this module's attributes.
    Called once at startup so DB values override .env from the start.
    """
    import database as db
    import settings_store

    for key, meta in settings_store.SETTINGS_META.items():
        try:
            db_raw = await db.get_setting(key)
        except Exception as exc:
            logger.warning("apply_db_settings: DB lookup failed for %s: %s", key, exc)
            continue
        # Only apply if there's a DB override (don't stomp .env unnecessarily)
        if db_raw is not None:
            settings_store._apply_to_config(key, db_raw, meta["type"])
