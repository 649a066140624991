"""
Tests for key_store.py.

Covers:
  - get(): DB first → env var fallback → None
  - set(): saves to DB, overrides env
  - delete(): removes from DB, falls back to env
  - get_all_keys(): returns all known key names
  - mask(): various masking scenarios
"""
from __future__ import annotations

import pytest
import pytest_asyncio

import database as db
import key_store


@pytest_asyncio.fixture(autouse=True)
async def init_db(tmp_data_dir):
    await db.init_db()


# ── get() ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestGet:
    async def test_db_value_wins_over_env(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk-env")
        await db.set_api_key("groq_api_key", "gsk-db")
        result = await key_store.get("groq_api_key")
        assert result == "gsk-db"

    async def test_env_var_used_as_fallback(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk-from-env")
        result = await key_store.get("groq_api_key")
        assert result == "gsk-from-env"

    async def test_returns_none_when_not_set(self):
        result = await key_store.get("groq_api_key")
        assert result is None

    async def test_env_var_name_is_uppercased(self, monkeypatch):
        monkeypatch.setenv("SHOPIFY_ACCESS_TOKEN", "shpat_value")
        result = await key_store.get("shopify_access_token")
        assert result == "shpat_value"


# ── set() ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSetKey:
    async def test_saves_to_db(self):
        await key_store.set("google_api_key", "AIza-test")
        db_val = await db.get_api_key("google_api_key")
        assert db_val == "AIza-test"

    async def test_overrides_env_value(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "AIza-env")
        await key_store.set("google_api_key", "AIza-db")
        result = await key_store.get("google_api_key")
        assert result == "AIza-db"


# ── delete() ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestDeleteKey:
    async def test_removes_from_db(self):
        await key_store.set("openrouter_api_key", "sk-or-test")
        await key_store.delete("openrouter_api_key")
        db_val = await db.get_api_key("openrouter_api_key")
        assert db_val is None

    async def test_falls_back_to_env_after_delete(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-env")
        await key_store.set("openrouter_api_key", "sk-or-db")
        await key_store.delete("openrouter_api_key")
        result = await key_store.get("openrouter_api_key")
        assert result == "sk-or-env"


# ── get_all_keys() ────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestGetAllKeys:
    async def test_returns_all_known_keys(self):
        keys = await key_store.get_all_keys()
        for k in (
            "shopify_access_token",
            "shopify_client_id",
            "shopify_client_secret",
            "google_api_key",
            "groq_api_key",
            "openrouter_api_key",
            "telegram_bot_token",
        ):
            assert k in keys

    async def test_set_key_appears_in_get_all(self):
        await key_store.set("shopify_access_token", "shpat_all")
        keys = await key_store.get_all_keys()
        assert keys["shopify_access_token"] == "shpat_all"


# ── mask() ────────────────────────────────────────────────────────────────────

class TestMask:
    def test_none_shows_not_set(self):
        assert key_store.mask(None) == "not set"

    def test_empty_shows_not_set(self):
        assert key_store.mask("") == "not set"

    def test_short_key_shows_stars(self):
        assert key_store.mask("gsk-ab") == "****"

    def test_long_key_shows_partial(self):
        result = key_store.mask("shpat_1234567890abcdef")
        assert result.startswith("shpa")
        assert result.endswith("cdef")
        assert "1234567890" not in result
        assert "***" in result

    def test_exactly_8_chars_shows_stars(self):
        assert key_store.mask("abcdefgh") == "****"
