"""
oauth.py — Shopify app install flow for multi-store mode.

  1. build_install_url()  → send the merchant to /admin/oauth/authorize
  2. Shopify redirects back with ?code=…&hmac=…&shop=…&state=…
     parse_callback() checks state + verify_callback_hmac() on those params
  3. exchange_code()      → POST /admin/oauth/access_token, token stored
  4. webhooks carry X-Shopify-Hmac-Sha256 → verify_webhook_hmac()

No HTTP routes live here; `seo-autofix shops install-url / connect` drive it.
"""
from __future__ import annotations

import asyncio
import base64
import hashlib
import hmac
import logging
import secrets
from typing import Iterable, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

import aiohttp

import config
from catalog.base import CatalogConnectionError, UpstreamError
from token_store import ShopToken, TokenStore, normalize_shop_domain

logger = logging.getLogger(__name__)

# The pipeline only reads and writes products
DEFAULT_SCOPES = ("read_products", "write_products")


def generate_state() -> str:
    """Random nonce for the state parameter."""
    return secrets.token_urlsafe(16)


def build_install_url(
    shop: str,
    client_id: str,
    redirect_uri: str,
    state: str,
    scopes: Iterable[str] = DEFAULT_SCOPES,
) -> str:
    domain = normalize_shop_domain(shop)
    query = urlencode({
        "client_id":    client_id,
        "scope":        ",".join(scopes),
        "redirect_uri": redirect_uri,
        "state":        state,
    })
    return f"https://{domain}/admin/oauth/authorize?{query}"


async def exchange_code(
    shop: str,
    code: str,
    client_id: str,
    client_secret: str,
    store: Optional[TokenStore] = None,
) -> ShopToken:
    """
    Trade an authorization code for a permanent Admin API token.
    Raises UpstreamError if Shopify rejects the code.
    The token is saved to `store` when one is given.
    """
    domain = normalize_shop_domain(shop)
    url = f"https://{domain}/admin/oauth/access_token"
    payload = {"client_id": client_id, "client_secret": client_secret, "code": code}
    timeout = aiohttp.ClientTimeout(total=config.REQUEST_TIMEOUT_SECS)

    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(url, json=payload, timeout=timeout) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise UpstreamError(
                        f"OAuth exchange for {domain} failed: HTTP {resp.status}",
                        status=resp.status, body=text[:300],
                    )
                data = await resp.json()
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        raise UpstreamError(f"OAuth exchange for {domain} failed: {exc!r}") from exc

    access_token = data.get("access_token")
    if not access_token:
        raise UpstreamError(f"OAuth exchange for {domain} returned no access_token")

    token = ShopToken(
        shop=domain,
        access_token=access_token,
        scope=data.get("scope", ""),
        shop_name=await _shop_name(domain, access_token),
    )
    if store is not None:
        await store.put(token)
    logger.info("Installed on %s (scope: %s)", domain, token.scope or "none")
    return token


async def _shop_name(domain: str, access_token: str) -> str:
    from catalog.shopify_client import ShopifyClient

    try:
        shop = await ShopifyClient(domain, access_token).check_connection()
    except CatalogConnectionError as exc:
        logger.warning("Could not read shop info for %s: %s", domain, exc)
        return ""
    return shop.get("name", "")


# ── HMAC checks ───────────────────────────────────────────────────────────────

def verify_webhook_hmac(body: bytes, header: Optional[str], secret: str) -> bool:
    """X-Shopify-Hmac-Sha256 is base64(HMAC-SHA256(secret, raw body))."""
    if not header or not secret:
        return False
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode()
    return hmac.compare_digest(expected, header.strip())


def verify_callback_hmac(params: Mapping[str, str], secret: str) -> bool:
    """
    The redirect query is signed with a hex HMAC over every other parameter,
    sorted by name and joined as k=v&k=v.
    """
    received = params.get("hmac")
    if not received or not secret:
        return False
    message = "&".join(f"{k}={v}" for k, v in sorted(params.items()) if k not in ("hmac", "signature"))
    expected = hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, received)


def parse_callback(url: str, secret: str, state: Optional[str] = None) -> tuple[str, str]:
    """
    Validate the install redirect URL and return (shop domain, code).
    Raises ValueError when the HMAC, state, shop or code is wrong or missing.
    """
    params = dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))
    if not verify_callback_hmac(params, secret):
        raise ValueError("Callback HMAC check failed")
    if state is not None and not hmac.compare_digest(params.get("state", ""), state):
        raise ValueError("Callback state does not match")
    code = params.get("code", "")
    if not code:
        raise ValueError("Callback has no code")
    return normalize_shop_domain(params.get("shop", "")), code
