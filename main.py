"""
main.py — `seo-autofix` command line entry point.

  seo-autofix check                         connection + provider check
  seo-autofix run [--shop S | --all-shops]  one remediation run
                  [--dry-run] [--no-ai] [--max-pages N]
  seo-autofix schedule [...run options]     re-run every RUN_INTERVAL_MINUTES
  seo-autofix keys     list | set NAME VALUE | delete NAME
  seo-autofix settings list | set KEY VALUE | delete KEY
  seo-autofix shops    list | install-url | connect | remove
  seo-autofix history  [--limit N]

Exit codes: 0 ok, 1 usage/config or catalog read error, 2 store unreachable.
"""
import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

import config

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_UNREACHABLE = 2


def _setup_logging(verbose: bool = False) -> None:
    # Log file lives next to the database so one volume mount captures both
    data_dir = Path(os.getenv("DATA_DIR", "data"))
    data_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(str(data_dir / "autofix.log"), encoding="utf-8"),
        ],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)


async def _bootstrap() -> None:
    import database as db
    try:
        await db.init_db()
        await config.apply_db_settings()
    except Exception as exc:
        logger.critical("FATAL: database init failed: %s", exc, exc_info=True)
        raise
    logger.debug("Database ready at %s", db.DB_PATH)


# ── Store targets ─────────────────────────────────────────────────────────────

async def _resolve_targets(shop: Optional[str], all_shops: bool) -> list[tuple[str, str]]:
    """
    (store domain, access token) pairs to work on.
    Default is the single store from SHOPIFY_STORE_URL + shopify_access_token.
    """
    import key_store
    from token_store import SQLiteTokenStore

    store = SQLiteTokenStore()
    if all_shops:
        return [(t.shop, t.access_token) for t in await store.all()]
    if shop:
        token = await store.get(shop)
        if token is None:
            raise LookupError(f"No token stored for {shop} — run `seo-autofix shops connect` first")
        return [(token.shop, token.access_token)]

    if not config.SHOPIFY_STORE_URL:
        raise LookupError("SHOPIFY_STORE_URL is not set")
    access_token = await key_store.get("shopify_access_token")
    if not access_token:
        raise LookupError("shopify_access_token is not set (keys set or .env)")
    return [(config.SHOPIFY_STORE_URL, access_token)]


# ── run / check / schedule ────────────────────────────────────────────────────

async def _run_one(shop: str, access_token: str, args: argparse.Namespace) -> int:
    import database as db
    import notifications
    import report
    from catalog.base import CatalogConnectionError, UpstreamError
    from catalog.shopify_client import ShopifyClient
    from generator import ContentGenerator
    from pipeline import run_pipeline

    client = ShopifyClient(shop, access_token)
    generator = ContentGenerator(use_ai=False if args.no_ai else None)
    logger.info("▶ Starting %s on %s", "dry run" if args.dry_run else "run", client.name)

    try:
        stats = await run_pipeline(
            client, generator, max_pages=args.max_pages, dry_run=args.dry_run,
        )
    except CatalogConnectionError as exc:
        logger.critical("❌ %s", exc)
        await notifications.admin(f"❌ Store unreachable: `{report.esc(client.name)}`")
        return EXIT_UNREACHABLE
    except UpstreamError as exc:
        logger.error("❌ Run aborted on %s: %s", client.name, exc)
        return EXIT_ERROR

    print(report.format_summary(stats, client.name, dry_run=args.dry_run))
    report.write_json_report(stats, client.name, dry_run=args.dry_run)
    try:
        await db.log_run(client.name, stats.summary(), dry_run=args.dry_run)
    except Exception as exc:
        logger.warning("Could not record run history: %s", exc)
    await notifications.admin(report.format_admin_message(stats, client.name, dry_run=args.dry_run))
    return EXIT_OK


async def cmd_run(args: argparse.Namespace) -> int:
    try:
        targets = await _resolve_targets(args.shop, args.all_shops)
    except (LookupError, ValueError) as exc:
        logger.error("%s", exc)
        return EXIT_ERROR
    if not targets:
        logger.error("No connected stores")
        return EXIT_ERROR

    worst = EXIT_OK
    for shop, access_token in targets:
        worst = max(worst, await _run_one(shop, access_token, args))
    return worst


async def cmd_check(args: argparse.Namespace) -> int:
    from catalog.base import CatalogConnectionError
    from catalog.shopify_client import ShopifyClient
    from providers import manager

    try:
        targets = await _resolve_targets(args.shop, args.all_shops)
    except (LookupError, ValueError) as exc:
        logger.error("%s", exc)
        return EXIT_ERROR

    code = EXIT_OK
    for shop, access_token in targets:
        client = ShopifyClient(shop, access_token)
        try:
            info = await client.check_connection()
        except CatalogConnectionError as exc:
            print(f"❌ {client.name}: {exc}")
            code = EXIT_UNREACHABLE
            continue
        print(f"✅ {client.name}: {info.get('name', 'connected')}")

    providers = await manager.get_providers()
    if providers:
        print("🤖 AI providers: " + " → ".join(p.full_name for p in providers))
    else:
        print("🤖 AI providers: none — local heuristics only")
    return code


async def cmd_schedule(args: argparse.Namespace) -> int:
    import scheduler as sched

    interval = args.interval or config.RUN_INTERVAL_MINUTES

    async def job() -> int:
        return await cmd_run(args)

    stop_event = asyncio.Event()

    def _stop(*_):
        logger.info("Shutdown signal received.")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except (NotImplementedError, RuntimeError):
            # Windows doesn't support add_signal_handler for all signals
            pass

    task = sched.start(job, interval)
    logger.info("✅ Scheduler running every %s min. Press Ctrl+C to stop.", interval)
    await stop_event.wait()

    sched.stop()
    task.cancel()
    if sched.is_busy():
        logger.info("Waiting for the current run to finish…")
        await sched.wait_idle()
    logger.info("Goodbye.")
    return EXIT_OK


# ── keys / settings ───────────────────────────────────────────────────────────

async def cmd_keys(args: argparse.Namespace) -> int:
    import key_store

    if args.action == "list":
        for name, value in (await key_store.get_all_keys()).items():
            print(f"{name:<24} {key_store.mask(value)}")
        return EXIT_OK

    if args.name not in key_store.KNOWN_KEYS:
        logger.error("Unknown key %r — known: %s", args.name, ", ".join(key_store.KNOWN_KEYS))
        return EXIT_ERROR
    if args.action == "set":
        await key_store.set(args.name, args.value)
        print(f"✅ {args.name} saved")
    else:
        await key_store.delete(args.name)
        print(f"🗑 {args.name} removed (falls back to .env)")
    return EXIT_OK


async def cmd_settings(args: argparse.Namespace) -> int:
    import settings_store

    if args.action == "list":
        values = await settings_store.get_all()
        for key, meta in settings_store.SETTINGS_META.items():
            print(f"{key:<22} {values[key]:<36} {meta['desc']}")
        return EXIT_OK

    try:
        if args.action == "set":
            await settings_store.set(args.key, args.value)
            print(f"✅ {args.key} = {args.value}")
        else:
            await settings_store.delete(args.key)
            print(f"🗑 {args.key} reset to default")
    except KeyError as exc:
        logger.error("%s", exc.args[0])
        return EXIT_ERROR
    except ValueError as exc:
        logger.error("Invalid value for %s: %s", args.key, exc)
        return EXIT_ERROR
    return EXIT_OK


# ── shops ─────────────────────────────────────────────────────────────────────

async def cmd_shops(args: argparse.Namespace) -> int:
    import key_store
    import oauth
    from catalog.base import UpstreamError
    from token_store import ShopToken, SQLiteTokenStore, normalize_shop_domain

    store = SQLiteTokenStore()

    if args.action == "list":
        tokens = await store.all()
        if not tokens:
            print("No connected stores.")
        for t in tokens:
            print(f"{t.shop:<40} {t.shop_name or '-':<24} {t.scope or '-':<32} {t.installed_at}")
        return EXIT_OK

    try:
        if args.action == "remove":
            removed = await store.delete(args.shop)
            print(f"🗑 {args.shop} removed" if removed else f"{args.shop} was not connected")
            return EXIT_OK

        if args.action == "install-url":
            client_id = await key_store.get("shopify_client_id")
            if not client_id:
                logger.error("shopify_client_id is not set")
                return EXIT_ERROR
            state = oauth.generate_state()
            print(oauth.build_install_url(args.shop, client_id, args.redirect_uri, state))
            print(f"state: {state}")
            return EXIT_OK

        # connect
        if args.token:
            await store.put(ShopToken(shop=args.shop, access_token=args.token))
            print(f"✅ {args.shop} connected")
            return EXIT_OK
        client_id = await key_store.get("shopify_client_id")
        client_secret = await key_store.get("shopify_client_secret")
        if not (client_id and client_secret):
            logger.error("shopify_client_id and shopify_client_secret must be set")
            return EXIT_ERROR
        code = args.code
        if args.callback_url:
            shop, code = oauth.parse_callback(args.callback_url, client_secret, state=args.state)
            if shop != normalize_shop_domain(args.shop):
                raise ValueError(f"Callback is for {shop}, not {args.shop}")
        token = await oauth.exchange_code(args.shop, code, client_id, client_secret, store=store)
        print(f"✅ {token.shop} connected ({token.shop_name or 'unnamed shop'})")
        return EXIT_OK
    except ValueError as exc:
        logger.error("%s", exc)
        return EXIT_ERROR
    except UpstreamError as exc:
        logger.error("%s", exc)
        return EXIT_ERROR


async def cmd_history(args: argparse.Namespace) -> int:
    import database as db

    runs = await db.get_recent_runs(args.limit)
    if not runs:
        print("No runs recorded yet.")
    for r in runs:
        mode = "dry" if r.dry_run else "fix"
        print(
            f"#{r.id:<4} {r.started_at:%Y-%m-%d %H:%M}  {mode}  {r.shop:<36} "
            f"analysed={r.analyzed} needing_fix={r.needing_fix} fixes={r.fixes} errors={r.errors}"
        )
    return EXIT_OK


# ── Parser ────────────────────────────────────────────────────────────────────

def _add_target_args(p: argparse.ArgumentParser) -> None:
    group = p.add_mutually_exclusive_group()
    group.add_argument("--shop", help="Connected store (name or name.myshopify.com)")
    group.add_argument("--all-shops", action="store_true", help="Every connected store")


def _add_run_args(p: argparse.ArgumentParser) -> None:
    _add_target_args(p)
    p.add_argument("--dry-run", action="store_true", help="Classify and report only, write nothing")
    p.add_argument("--no-ai", action="store_true", help="Use local heuristics only")
    p.add_argument("--max-pages", type=int, default=None, help="Catalog page cap (0 = no cap)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="seo-autofix",
        description="Find and fix SEO gaps in Shopify product catalogs",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_check = sub.add_parser("check", help="Check store connection and AI providers")
    _add_target_args(p_check)

    _add_run_args(sub.add_parser("run", help="Run the remediation pipeline once"))

    p_sched = sub.add_parser("schedule", help="Re-run the pipeline on an interval")
    _add_run_args(p_sched)
    p_sched.add_argument("--interval", type=float, default=None, help="Minutes between runs")

    p_keys = sub.add_parser("keys", help="Manage API keys")
    keys_sub = p_keys.add_subparsers(dest="action", required=True)
    keys_sub.add_parser("list")
    k_set = keys_sub.add_parser("set")
    k_set.add_argument("name")
    k_set.add_argument("value")
    keys_sub.add_parser("delete").add_argument("name")

    p_settings = sub.add_parser("settings", help="Manage runtime settings")
    set_sub = p_settings.add_subparsers(dest="action", required=True)
    set_sub.add_parser("list")
    s_set = set_sub.add_parser("set")
    s_set.add_argument("key")
    s_set.add_argument("value")
    set_sub.add_parser("delete").add_argument("key")

    p_shops = sub.add_parser("shops", help="Manage connected stores")
    shops_sub = p_shops.add_subparsers(dest="action", required=True)
    shops_sub.add_parser("list")
    sh_url = shops_sub.add_parser("install-url", help="Print the app install URL")
    sh_url.add_argument("shop")
    sh_url.add_argument("--redirect-uri", required=True)
    sh_connect = shops_sub.add_parser("connect", help="Store a token for a shop")
    sh_connect.add_argument("shop")
    how = sh_connect.add_mutually_exclusive_group(required=True)
    how.add_argument("--callback-url", help="Full install redirect URL (HMAC-checked)")
    how.add_argument("--code", help="OAuth code from the install redirect")
    how.add_argument("--token", help="Admin API token of a custom app")
    sh_connect.add_argument("--state", help="state printed by install-url (with --callback-url)")
    shops_sub.add_parser("remove").add_argument("shop")

    p_hist = sub.add_parser("history", help="Show recent runs")
    p_hist.add_argument("--limit", type=int, default=10)

    return parser


_COMMANDS = {
    "check":    cmd_check,
    "run":      cmd_run,
    "schedule": cmd_schedule,
    "keys":     cmd_keys,
    "settings": cmd_settings,
    "shops":    cmd_shops,
    "history":  cmd_history,
}


async def run(args: argparse.Namespace) -> int:
    await _bootstrap()
    return await _COMMANDS[args.command](args)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
