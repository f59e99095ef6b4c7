"""
Telegram bot application factory.

Builds the python-telegram-bot Application with the sync commands
registered.
"""
from typing import Optional

from telegram.ext import Application, CommandHandler, filters

from marketos.bot.handlers import error_handler, handle_status, handle_sync


def build_bot_app(
    token: str,
    scheduler,
    owner_chat_id: Optional[int] = None,
) -> Application:
    """
    Build and return the PTB Application.

    Args:
        token: Telegram bot token.
        scheduler: SyncScheduler the commands read from and trigger.
        owner_chat_id: If set, only this user may use the commands, and
            unhandled errors are reported to this chat.

    Returns:
        Configured Application (not yet started).
    """
    app = Application.builder().token(token).build()

    app.bot_data["scheduler"] = scheduler
    app.bot_data["owner_chat_id"] = owner_chat_id

    allowed = filters.User(user_id=owner_chat_id) if owner_chat_id else None
    app.add_handler(CommandHandler("status", handle_status, filters=allowed))
    app.add_handler(CommandHandler("sync", handle_sync, filters=allowed))

    app.add_error_handler(error_handler)

    return app
