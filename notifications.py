"""
notifications.py — Send run summaries to admins over Telegram.

Usage:
    import notifications
    await notifications.admin(text)   # from main.py after every run

Silent no-op when no bot token is configured (key_store "telegram_bot_token"
or TELEGRAM_BOT_TOKEN) or no ADMIN_IDS are set.
"""
from __future__ import annotations

import logging
from typing import Optional

from telegram import Bot

logger = logging.getLogger(__name__)

_bot: Optional[Bot] = None


def init(bot: Optional[Bot]) -> None:
    """Override the bot used for sending (tests, or a shared instance)."""
    global _bot
    _bot = bot


async def _get_bot() -> Optional[Bot]:
    global _bot
    if _bot is None:
        import key_store
        token = await key_store.get("telegram_bot_token")
        if token:
            _bot = Bot(token)
    return _bot


async def admin(text: str, parse_mode: str = "MarkdownV2") -> int:
    """
    Send *text* to every admin user. Failures are logged, not raised.
    Returns how many admins were reached.
    """
    import config

    if not config.ADMIN_IDS:
        return 0
    try:
        bot = await _get_bot()
    except Exception as exc:
        logger.warning("notifications.admin: bot unavailable: %s", exc)
        return 0
    if bot is None:
        logger.debug("notifications.admin: no Telegram token configured")
        return 0

    sent = 0
    for uid in sorted(config.ADMIN_IDS):
        try:
            await bot.send_message(
                chat_id=uid,
                text=text,
                parse_mode=parse_mode,
                disable_web_page_preview=True,
            )
            sent += 1
        except Exception as exc:
            logger.warning("Failed to notify admin %d: %s", uid, exc)
    return sent
