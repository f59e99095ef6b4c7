"""
One-off management commands.

Usage:
    python -m marketos add-integration --marketplace WB --api-key KEY [--interval 5]
    python -m marketos add-integration --marketplace Ozon --api-key KEY --client-id 123
    python -m marketos sync-once [--integration ID]

sync-once runs a single pass without the scheduler loop, so it must not be
used against integrations that a running service is syncing at the same time.
"""
import logging
from typing import Optional

import httpx
from sqlmodel import Session

logger = logging.getLogger(__name__)


def add_integration(
    marketplace: str,
    api_key: str,
    name: str = "",
    client_id: Optional[str] = None,
    campaign_id: Optional[str] = None,
    interval_minutes: Optional[int] = None,
    engine=None,
) -> str:
    """Create an integration row and return its id."""
    from marketos.config import get_settings
    from marketos.db.engine import get_engine
    from marketos.models.integration import Marketplace, MarketplaceIntegration

    engine = engine or get_engine()
    interval = interval_minutes or get_settings().default_sync_interval_minutes
    if interval <= 0:
        raise ValueError("interval must be a positive number of minutes")

    row = MarketplaceIntegration(
        marketplace=Marketplace(marketplace),
        name=name,
        api_key=api_key,
        client_id=client_id,
        campaign_id=campaign_id,
        interval_minutes=interval,
    )
    with Session(engine) as s:
        s.add(row)
        s.commit()
        s.refresh(row)
        logger.info("Added %s integration %s (every %d min)", marketplace, row.id, interval)
        return row.id


async def sync_once(integration_id: Optional[str] = None, engine=None) -> int:
    """
    Sync one integration, or every active one, a single time.

    Failures are logged and do not stop the remaining integrations.

    Returns:
        Process exit code: 0 if every pass succeeded, 1 otherwise.
    """
    from marketos.config import get_settings
    from marketos.db.engine import get_engine
    from marketos.sync.integrations import load_integrations
    from marketos.sync.service import IntegrationSyncService

    settings = get_settings()
    engine = engine or get_engine()
    ids = [integration_id] if integration_id else [i.id for i in load_integrations(engine)]
    if not ids:
        logger.info("No active integrations to sync")
        return 0

    failures = 0
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http:
        service = IntegrationSyncService(engine=engine, http=http, settings=settings)
        for iid in ids:
            try:
                result = await service.sync(iid)
            except Exception as exc:
                failures += 1
                logger.error("Sync failed for %s: %s", iid, exc)
                continue
            if result.skipped:
                logger.info("Sync skipped for %s (inactive)", iid)
            else:
                logger.info("Synced %s: %d items", iid, result.items_synced)
    return 1 if failures else 0
