"""
IntegrationSyncService — one sync pass for one marketplace integration.

Flow for a single pass:
  1. Load the MarketplaceIntegration row (inactive → skipped result)
  2. Build the marketplace client for it
  3. Fetch products (with stock) → upsert MarketplaceProduct rows
  4. Fetch sales for the lookback window → upsert MarketplaceSale rows
  5. Return the number of items written

Exceptions from the marketplace client propagate; the scheduler's run unit
turns them into a failed run. Re-running a pass over the same window is
idempotent: products are keyed on (integration_id, sku) and sales on
(integration_id, external_id), so existing rows are updated in place.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import httpx
from sqlmodel import Session, select

from marketos.config import Settings, get_settings
from marketos.marketplaces.base import ProductRecord, SaleRecord
from marketos.marketplaces.factory import build_client
from marketos.models.integration import MarketplaceIntegration
from marketos.models.product import MarketplaceProduct, MarketplaceSale
from marketos.sync.errors import UnknownIntegrationError

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one pass as seen by the scheduler."""

    items_synced: int = 0
    error: Optional[str] = None
    skipped: bool = False


class IntegrationSyncService:
    """Fetches marketplace data for an integration and persists it."""

    def __init__(
        self,
        engine,
        http: httpx.AsyncClient,
        settings: Optional[Settings] = None,
        client_factory=build_client,
    ):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
            http: Shared httpx.AsyncClient; its lifetime is owned by the caller.
            settings: Defaults to get_settings().
            client_factory: Callable(integration, http, settings) → MarketplaceClient.
        """
        self.engine = engine
        self.http = http
        self.settings = settings or get_settings()
        self._client_factory = client_factory

    async def sync(self, integration_id: str) -> SyncResult:
        """
        Run one pass for ``integration_id``.

        Raises:
            UnknownIntegrationError: if no such integration exists.
            MarketplaceError: and subclasses, from the marketplace client.
        """
        integration = self._load_integration(integration_id)
        if not integration.is_active:
            logger.info("Integration %s is inactive, skipping sync", integration_id)
            return SyncResult(skipped=True)

        client = self._client_factory(integration, self.http, self.settings)

        date_to = datetime.now(timezone.utc)
        date_from = date_to - timedelta(days=self.settings.sync_lookback_days)

        products = await client.get_products()
        sales = await client.get_sales(date_from, date_to)

        written = self._upsert_products(integration_id, products)
        written += self._upsert_sales(integration_id, sales)
        logger.info(
            "Integration %s (%s): %d products, %d sales",
            integration_id, integration.marketplace, len(products), len(sales),
        )
        return SyncResult(items_synced=written)

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _load_integration(self, integration_id: str) -> MarketplaceIntegration:
        with Session(self.engine) as s:
            integration = s.get(MarketplaceIntegration, integration_id)
        if integration is None:
            raise UnknownIntegrationError(integration_id)
        return integration

    def _upsert_products(self, integration_id: str, products: List[ProductRecord]) -> int:
        now = datetime.utcnow()
        with Session(self.engine) as s:
            existing = {
                p.sku: p
                for p in s.exec(
                    select(MarketplaceProduct).where(
                        MarketplaceProduct.integration_id == integration_id
                    )
                ).all()
            }
            for record in products:
                row = existing.get(record.sku)
                if row is None:
                    row = MarketplaceProduct(integration_id=integration_id, sku=record.sku)
                    existing[record.sku] = row
                row.title = record.title or row.title
                row.category = record.category or row.category
                if record.price is not None:
                    row.price = record.price
                row.stock = record.stock
                row.synced_at = now
                s.add(row)
            s.commit()
        return len(products)

    def _upsert_sales(self, integration_id: str, sales: List[SaleRecord]) -> int:
        now = datetime.utcnow()
        with Session(self.engine) as s:
            existing = {
                sale.external_id: sale
                for sale in s.exec(
                    select(MarketplaceSale).where(
                        MarketplaceSale.integration_id == integration_id
                    )
                ).all()
            }
            for record in sales:
                row = existing.get(record.external_id)
                if row is None:
                    row = MarketplaceSale(
                        integration_id=integration_id,
                        external_id=record.external_id,
                        sku=record.sku,
                        sold_at=record.sold_at,
                    )
                    existing[record.external_id] = row
                row.sku = record.sku
                row.sold_at = record.sold_at
                row.qty = record.qty
                row.revenue = record.revenue
                row.synced_at = now
                s.add(row)
            s.commit()
        return len(sales)
