"""
Telegram bot command handlers.

Bot data keys (set in build_bot_app):
  context.bot_data["scheduler"]     — the running SyncScheduler
  context.bot_data["owner_chat_id"] — chat to notify on unhandled errors (optional)
"""
import logging
import traceback
from datetime import datetime
from typing import Optional

from telegram import Update
from telegram.ext import ContextTypes

from marketos.sync.errors import SchedulerNotRunningError, UnknownIntegrationError
from marketos.sync.status import SyncStatus
from marketos.sync.trigger import ManualTrigger, TriggerResult

logger = logging.getLogger(__name__)


def _fmt(dt: Optional[datetime]) -> str:
    if dt is None:
        return "never"
    return dt.strftime("%Y-%m-%d %H:%M UTC")


def format_status(status: SyncStatus) -> str:
    """Render a status snapshot as a short plain-text message."""
    lines = [
        f"Last sync: {_fmt(status.last_sync)}",
        f"Next sync: {_fmt(status.next_sync) if status.next_sync else 'pending'}",
        f"Running now: {status.running_count}",
    ]
    if status.last_error:
        lines.append(f"Last error: {status.last_error}")
    if status.integrations:
        lines.append("")
    for item in status.integrations:
        state = "syncing" if item.running else (
            item.last_outcome.value if item.last_outcome else "not run yet"
        )
        line = (
            f"{item.marketplace.value} {item.integration_id}: {state}, "
            f"every {item.interval_minutes} min, last ok {_fmt(item.last_sync)}"
        )
        if item.last_error:
            line += f" ⚠️ {item.last_error}"
        lines.append(line)
    return "\n".join(lines)


async def handle_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    /status — current auto-sync status.
    """
    scheduler = context.bot_data["scheduler"]
    await update.message.reply_text(format_status(scheduler.get_status()))


async def handle_sync(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    /sync [integration_id] — sync one integration now, or all of them.
    """
    trigger = ManualTrigger(context.bot_data["scheduler"])
    parts = (update.message.text or "").strip().split()

    try:
        if len(parts) >= 2:
            results = {parts[1]: trigger.request_now(parts[1])}
        else:
            results = trigger.request_all()
    except UnknownIntegrationError:
        await update.message.reply_text(f"Unknown integration: {parts[1]}")
        return
    except SchedulerNotRunningError:
        await update.message.reply_text("Auto-sync is not running right now.")
        return

    if not results:
        await update.message.reply_text("No integrations configured.")
        return

    lines = []
    for integration_id, result in results.items():
        if result is TriggerResult.STARTED:
            lines.append(f"{integration_id}: sync started")
        else:
            lines.append(f"{integration_id}: already syncing")
    await update.message.reply_text("\n".join(lines))


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Global PTB error handler — logs the exception and notifies the owner."""
    logger.exception("Unhandled exception", exc_info=context.error)

    chat_id = context.bot_data.get("owner_chat_id")
    if not chat_id:
        return

    tb = "".join(traceback.format_exception(type(context.error), context.error, context.error.__traceback__))
    # Telegram message limit is 4096 chars
    short_tb = tb[-3000:] if len(tb) > 3000 else tb
    await context.bot.send_message(
        chat_id=chat_id,
        text=f"⚠️ Unhandled error:\n<pre>{short_tb}</pre>",
        parse_mode="HTML",
    )
