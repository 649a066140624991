"""
database.py — async SQLite persistence via aiosqlite.

Tables:
  api_keys     — secrets set via `seo-autofix keys set` (override .env values)
  settings     — runtime settings set via `seo-autofix settings set`
  shop_tokens  — Admin API tokens of every connected store (multi-store mode)
  run_history  — one row per remediation run, with its counters

The DB file is created automatically on first run.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiosqlite

logger = logging.getLogger(__name__)

# Keep the DB in a dedicated data/ directory so a single volume mount
# captures the DB and the log file.
_DATA_DIR = Path(os.getenv("DATA_DIR", "data"))
_DATA_DIR.mkdir(parents=True, exist_ok=True)

DB_PATH = str(_DATA_DIR / "autofix.db")
_lock = asyncio.Lock()          # serialise schema migrations


# ── Data models ───────────────────────────────────────────────────────────────

@dataclass
class RunRecord:
    id: int
    shop: str
    started_at: datetime
    finished_at: Optional[datetime]
    dry_run: bool
    analyzed: int
    needing_fix: int
    fixes: int
    errors: int
    counters: dict              # full RunStats summary as stored


# ── Schema ────────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS api_keys (
    key_name   TEXT PRIMARY KEY,
    key_value  TEXT NOT NULL,
    updated_by TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS settings (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_by TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL
);

-- One row per connected store (populated by the OAuth code exchange)
CREATE TABLE IF NOT EXISTS shop_tokens (
    shop         TEXT PRIMARY KEY,
    access_token TEXT NOT NULL,
    scope        TEXT NOT NULL DEFAULT '',
    shop_name    TEXT NOT NULL DEFAULT '',
    installed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS run_history (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    shop        TEXT    NOT NULL,
    started_at  TEXT    NOT NULL,
    finished_at TEXT,
    dry_run     INTEGER NOT NULL DEFAULT 0,
    analyzed    INTEGER NOT NULL DEFAULT 0,
    needing_fix INTEGER NOT NULL DEFAULT 0,
    fixes       INTEGER NOT NULL DEFAULT 0,
    errors      INTEGER NOT NULL DEFAULT 0,
    counters    TEXT    NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_run_history_started ON run_history (started_at);
"""


async def init_db() -> None:
    """Create tables if they don't exist. Safe to call multiple times."""
    async with _lock:
        async with aiosqlite.connect(DB_PATH) as db:
            await db.executescript(_SCHEMA)
            await db.commit()
    logger.info("Database initialised at %s", DB_PATH)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── API key operations ────────────────────────────────────────────────────────

async def get_api_key(key_name: str) -> Optional[str]:
    """Return DB-stored value for key_name, or None if not set."""
    async with aiosqlite.connect(DB_PATH) as db:
        async with db.execute(
            "SELECT key_value FROM api_keys WHERE key_name = ?", (key_name,)
        ) as cur:
            row = await cur.fetchone()
            return row[0] if row else None


async def set_api_key(key_name: str, key_value: str, updated_by: str = "cli") -> None:
    """Insert or replace an API key in the DB."""
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute(
            """INSERT INTO api_keys (key_name, key_value, updated_by, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(key_name) DO UPDATE SET
                 key_value=excluded.key_value,
                 updated_by=excluded.updated_by,
                 updated_at=excluded.updated_at""",
            (key_name, key_value, updated_by, _now()),
        )
        await db.commit()


async def delete_api_key(key_name: str) -> None:
    """Remove a key from DB (falls back to .env value)."""
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute("DELETE FROM api_keys WHERE key_name = ?", (key_name,))
        await db.commit()


# ── Settings operations ───────────────────────────────────────────────────────

async def get_setting(key: str) -> Optional[str]:
    async with aiosqlite.connect(DB_PATH) as db:
        async with db.execute("SELECT value FROM settings WHERE key = ?", (key,)) as cur:
            row = await cur.fetchone()
            return row[0] if row else None


async def set_setting(key: str, value: str, updated_by: str = "cli") -> None:
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute(
            """INSERT INTO settings (key, value, updated_by, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET
                 value=excluded.value,
                 updated_by=excluded.updated_by,
                 updated_at=excluded.updated_at""",
            (key, value, updated_by, _now()),
        )
        await db.commit()


async def delete_setting(key: str) -> None:
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute("DELETE FROM settings WHERE key = ?", (key,))
        await db.commit()


# ── Shop token operations ─────────────────────────────────────────────────────

async def get_shop_token(shop: str) -> Optional[dict]:
    """Return the stored token row for shop as a dict, or None."""
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute("SELECT * FROM shop_tokens WHERE shop = ?", (shop,)) as cur:
            row = await cur.fetchone()
    return dict(row) if row else None


async def upsert_shop_token(
    shop: str,
    access_token: str,
    scope: str = "",
    shop_name: str = "",
    installed_at: Optional[str] = None,
) -> None:
    async with aiosqlite.connect(DB_PATH) as db:
        await db.execute(
            """INSERT INTO shop_tokens (shop, access_token, scope, shop_name, installed_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(shop) DO UPDATE SET
                 access_token=excluded.access_token,
                 scope=excluded.scope,
                 shop_name=excluded.shop_name,
                 installed_at=excluded.installed_at""",
            (shop, access_token, scope, shop_name, installed_at or _now()),
        )
        await db.commit()


async def delete_shop_token(shop: str) -> bool:
    """Delete a shop's token. Returns True if a row was deleted."""
    async with aiosqlite.connect(DB_PATH) as db:
        cursor = await db.execute("DELETE FROM shop_tokens WHERE shop = ?", (shop,))
        await db.commit()
        return cursor.rowcount > 0


async def get_all_shop_tokens() -> list[dict]:
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute(
            "SELECT * FROM shop_tokens ORDER BY installed_at ASC"
        ) as cur:
            rows = await cur.fetchall()
    return [dict(r) for r in rows]


# ── Run history ───────────────────────────────────────────────────────────────

async def log_run(shop: str, summary: dict, dry_run: bool = False) -> int:
    """
    Record a finished run. `summary` is RunStats.summary().
    Returns the new row id.
    """
    async with aiosqlite.connect(DB_PATH) as db:
        cursor = await db.execute(
            """INSERT INTO run_history
               (shop, started_at, finished_at, dry_run, analyzed, needing_fix, fixes, errors, counters)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                shop,
                summary.get("started_at") or _now(),
                summary.get("finished_at"),
                1 if dry_run else 0,
                summary.get("analyzed", 0),
                summary.get("needing_fix", 0),
                summary.get("total_fixes", 0),
                summary.get("errors", 0),
                json.dumps(summary),
            ),
        )
        await db.commit()
        return cursor.lastrowid


async def get_recent_runs(limit: int = 10) -> list[RunRecord]:
    """Most recent runs first."""
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        async with db.execute(
            "SELECT * FROM run_history ORDER BY id DESC LIMIT ?", (limit,)
        ) as cur:
            rows = await cur.fetchall()
    return [
        RunRecord(
            id=r["id"],
            shop=r["shop"],
            started_at=datetime.fromisoformat(r["started_at"]),
            finished_at=datetime.fromisoformat(r["finished_at"]) if r["finished_at"] else None,
            dry_run=bool(r["dry_run"]),
            analyzed=r["analyzed"],
            needing_fix=r["needing_fix"],
            fixes=r["fixes"],
            errors=r["errors"],
            counters=json.loads(r["counters"] or "{}"),
        )
        for r in rows
    ]
