"""
Main entrypoint: API + auto-sync scheduler (+ Telegram bot) in one process.

The scheduler must live in the same process as the API so manual triggers
and status reads see the same run registry.

Usage:
    python -m marketos                     # API, scheduler and (if configured) bot
    python -m marketos add-integration ... # register a marketplace account
    python -m marketos sync-once [--integration ID]
"""
import argparse
import asyncio
import logging
import sys

from marketos.config import get_settings

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


async def _serve() -> None:
    import httpx
    import uvicorn

    from marketos.api.main import create_app
    from marketos.bot.app import build_bot_app
    from marketos.db.engine import get_engine
    from marketos.sync.scheduler import build_scheduler

    settings = get_settings()
    engine = get_engine()

    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http:
        scheduler = build_scheduler(engine, http, settings)
        scheduler.start()

        app = create_app(scheduler=scheduler, engine=engine)
        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=settings.api_host,
                port=settings.api_port,
                log_level=settings.log_level.lower(),
            )
        )

        bot = None
        if settings.telegram_bot_token:
            bot = build_bot_app(
                token=settings.telegram_bot_token,
                scheduler=scheduler,
                owner_chat_id=settings.telegram_allowed_user_id,
            )
        else:
            logger.info("TELEGRAM_BOT_TOKEN not set — bot disabled.")

        try:
            if bot is not None:
                await bot.initialize()
                await bot.start()
                await bot.updater.start_polling(drop_pending_updates=True)
                logger.info("Bot is running.")
            await server.serve()
        finally:
            logger.info("Shutting down...")
            if bot is not None:
                await bot.updater.stop()
                await bot.stop()
                await bot.shutdown()
            await scheduler.stop()
            logger.info("Goodbye.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="marketos")
    sub = parser.add_subparsers(dest="command")

    add = sub.add_parser("add-integration", help="register a marketplace account")
    add.add_argument("--marketplace", required=True, choices=["WB", "Ozon", "YaMarket"])
    add.add_argument("--api-key", required=True)
    add.add_argument("--name", default="")
    add.add_argument("--client-id", help="Ozon Client-Id")
    add.add_argument("--campaign-id", help="Yandex Market campaign id")
    add.add_argument("--interval", type=int, help="sync interval in minutes")

    once = sub.add_parser("sync-once", help="run one sync pass and exit")
    once.add_argument("--integration", help="integration id (default: all active)")
    return parser


def main(argv=None) -> int:
    args = _build_parser().parse_args(argv)

    if args.command == "add-integration":
        from marketos.scripts.manage import add_integration
        integration_id = add_integration(
            marketplace=args.marketplace,
            api_key=args.api_key,
            name=args.name,
            client_id=args.client_id,
            campaign_id=args.campaign_id,
            interval_minutes=args.interval,
        )
        print(integration_id)
        return 0

    if args.command == "sync-once":
        from marketos.scripts.manage import sync_once
        return asyncio.run(sync_once(args.integration))

    asyncio.run(_serve())
    return 0


if __name__ == "__main__":
    sys.exit(main())
