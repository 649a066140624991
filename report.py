"""
report.py — end-of-run output.

  format_summary        → plain text for the terminal / log
  format_admin_message  → Telegram MarkdownV2 card sent to admins
  write_json_report     → reports/qa-report-<timestamp>.json
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import config
from pipeline import RunStats

logger = logging.getLogger(__name__)

DIV = "━━━━━━━━━━━━━━━━━━━━━━━━━━"


def esc(text: str) -> str:
    """Escape all MarkdownV2 special characters."""
    for ch in r"\_*[]()~`>#+-=|{}.!":
        text = text.replace(ch, f"\\{ch}")
    return text


def _duration(stats: RunStats) -> str:
    if stats.finished_at is None:
        return "unfinished"
    secs = int((stats.finished_at - stats.started_at).total_seconds())
    return f"{secs // 60}m {secs % 60:02d}s"


def format_summary(stats: RunStats, shop: str = "", dry_run: bool = False) -> str:
    title = "SEO AUTO-FIX — DRY RUN" if dry_run else "SEO AUTO-FIX FINISHED"
    lines = [
        f"🎉 {title}" + (f" ({shop})" if shop else ""),
        DIV,
        f"📊 Products analysed:        {stats.analyzed}",
        f"🔍 Products needing fixes:   {stats.needing_fix}",
    ]
    if not dry_run:
        lines += [
            f"✅ Alt texts fixed:          {stats.alt_text}",
            f"✅ Products given SEO tags:  {stats.tags}",
            f"✅ Meta tags applied:        {stats.meta_tags}",
            f"✅ Categories set:           {stats.category}",
            f"❌ Errors:                   {stats.errors}",
            "",
            f"🚀 TOTAL: {stats.total_fixes} fixes applied",
        ]
    lines.append(f"⏱  {_duration(stats)}")
    return "\n".join(lines)


def format_admin_message(stats: RunStats, shop: str = "", dry_run: bool = False) -> str:
    header = "🔎 *SEO DRY RUN*" if dry_run else "🛠 *SEO AUTO\\-FIX RUN*"
    lines = [header]
    if shop:
        lines.append(f"🏬 `{esc(shop)}`")
    lines += [
        DIV,
        f"📦 Analysed:     *{stats.analyzed}*",
        f"🔍 Needing fix:  *{stats.needing_fix}*",
    ]
    if not dry_run:
        lines += [
            "",
            f"🖼 Alt texts:    *{stats.alt_text}*",
            f"🏷 Tags:         *{stats.tags}*",
            f"📝 Meta tags:    *{stats.meta_tags}*",
            f"🗂 Categories:   *{stats.category}*",
            "",
            f"🚀 Total fixes:  *{stats.total_fixes}*",
        ]
        if stats.errors:
            lines.append(f"⚠️ Errors:       *{stats.errors}*")
    lines.append(f"⏱ {esc(_duration(stats))}")
    return "\n".join(lines)


def write_json_report(
    stats: RunStats,
    shop: str = "",
    directory: Optional[str] = None,
    dry_run: bool = False,
) -> Path:
    """Write the full run report and return its path."""
    out_dir = Path(directory or config.REPORT_DIR)
    out_dir.mkdir(parents=True, exist_ok=True)

    stamp = (stats.finished_at or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%S%f")
    path = out_dir / f"qa-report-{stamp}.json"

    payload = {"shop": shop, "dry_run": dry_run, **stats.to_dict()}
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Report written to %s", path)
    return path
