"""
token_store.py — Admin API tokens of connected stores, keyed by shop domain.

Two backends share one interface:
  SQLiteTokenStore  — persistent, rows in database.shop_tokens
  MemoryTokenStore  — process-local dict (tests, one-off scripts)

Every shop key is normalised to "<name>.myshopify.com" before use.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

MYSHOPIFY_SUFFIX = ".myshopify.com"


def normalize_shop_domain(shop: str) -> str:
    """'my-store', 'https://my-store.myshopify.com/' → 'my-store.myshopify.com'"""
    shop = shop.strip().lower()
    shop = shop.removeprefix("https://").removeprefix("http://").split("/")[0]
    if not shop:
        raise ValueError("Empty shop domain")
    if shop.endswith(MYSHOPIFY_SUFFIX):
        return shop
    if "." in shop:
        # custom domain — the Admin API only lives on the myshopify one
        raise ValueError(f"Not a myshopify.com domain: {shop}")
    return shop + MYSHOPIFY_SUFFIX


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ShopToken:
    shop: str
    access_token: str = field(repr=False)
    scope: str = ""
    shop_name: str = ""
    installed_at: str = field(default_factory=_now)

    @classmethod
    def from_row(cls, row: dict) -> "ShopToken":
        return cls(
            shop=row["shop"],
            access_token=row["access_token"],
            scope=row.get("scope") or "",
            shop_name=row.get("shop_name") or "",
            installed_at=row.get("installed_at") or _now(),
        )


class TokenStore(ABC):

    @abstractmethod
    async def get(self, shop: str) -> Optional[ShopToken]: ...

    @abstractmethod
    async def put(self, token: ShopToken) -> None: ...

    @abstractmethod
    async def delete(self, shop: str) -> bool: ...

    @abstractmethod
    async def all(self) -> list[ShopToken]: ...

    async def has(self, shop: str) -> bool:
        return await self.get(shop) is not None


class MemoryTokenStore(TokenStore):

    def __init__(self) -> None:
        self._tokens: dict[str, ShopToken] = {}

    async def get(self, shop: str) -> Optional[ShopToken]:
        return self._tokens.get(normalize_shop_domain(shop))

    async def put(self, token: ShopToken) -> None:
        token.shop = normalize_shop_domain(token.shop)
        self._tokens[token.shop] = token

    async def delete(self, shop: str) -> bool:
        return self._tokens.pop(normalize_shop_domain(shop), None) is not None

    async def all(self) -> list[ShopToken]:
        return sorted(self._tokens.values(), key=lambda t: t.installed_at)


class SQLiteTokenStore(TokenStore):
    """Backed by the shop_tokens table. database.init_db() must have run."""

    async def get(self, shop: str) -> Optional[ShopToken]:
        import database as db
        row = await db.get_shop_token(normalize_shop_domain(shop))
        return ShopToken.from_row(row) if row else None

    async def put(self, token: ShopToken) -> None:
        import database as db
        token.shop = normalize_shop_domain(token.shop)
        await db.upsert_shop_token(
            token.shop, token.access_token,
            scope=token.scope, shop_name=token.shop_name, installed_at=token.installed_at,
        )
        logger.info("Stored token for %s", token.shop)

    async def delete(self, shop: str) -> bool:
        import database as db
        return await db.delete_shop_token(normalize_shop_domain(shop))

    async def all(self) -> list[ShopToken]:
        import database as db
        return [ShopToken.from_row(r) for r in await db.get_all_shop_tokens()]
