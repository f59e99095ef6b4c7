"""FastAPI application factory."""
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI

from marketos.api.routes import integrations, sync as sync_routes
from marketos.config import get_settings
from marketos.db.engine import create_tables, get_engine
from marketos.sync.scheduler import SyncScheduler, build_scheduler


def create_app(scheduler: Optional[SyncScheduler] = None, engine=None) -> FastAPI:
    """Build and return the FastAPI app.

    Args:
        scheduler: Scheduler to expose. If it is not yet started the app
            starts and stops it with its own lifespan; if the caller already
            started it, the caller keeps ownership. When None, one is built
            from the database and settings.
        engine: SQLAlchemy engine; defaults to get_engine().
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        db_engine = engine or get_engine()
        # Create tables on startup (idempotent)
        create_tables(db_engine)

        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http:
            sched = scheduler or build_scheduler(db_engine, http, settings)
            app.state.engine = db_engine
            app.state.scheduler = sched
            owns_scheduler = not sched.running and sched.start()
            try:
                yield
            finally:
                if owns_scheduler:
                    await sched.stop()

    app = FastAPI(
        title="MarketOS Sync API",
        description="Marketplace auto-sync status and control",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])
    app.include_router(integrations.router, prefix="/integrations", tags=["integrations"])

    return app


# Module-level app instance for uvicorn
app = create_app()
