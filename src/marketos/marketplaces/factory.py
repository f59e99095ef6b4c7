"""Build the right marketplace client for an integration row."""
import httpx

from marketos.config import Settings
from marketos.marketplaces.base import (
    MarketplaceClient,
    MissingCredentialsError,
    UnsupportedMarketplaceError,
)
from marketos.marketplaces.ozon import OzonClient
from marketos.marketplaces.wildberries import WildberriesClient
from marketos.marketplaces.yandex_market import YandexMarketClient
from marketos.models.integration import Marketplace, MarketplaceIntegration


def build_client(
    integration: MarketplaceIntegration,
    http: httpx.AsyncClient,
    settings: Settings,
) -> MarketplaceClient:
    """
    Raises:
        MissingCredentialsError: if the integration lacks required credentials.
        UnsupportedMarketplaceError: for an unknown marketplace kind.
    """
    if not integration.api_key:
        raise MissingCredentialsError(f"API key not set for integration {integration.id}")

    marketplace = Marketplace(integration.marketplace)
    if marketplace is Marketplace.WB:
        return WildberriesClient(
            http,
            api_key=integration.api_key,
            base_url=settings.wb_statistics_api_base,
            retries=settings.http_retries,
        )
    if marketplace is Marketplace.OZON:
        if not integration.client_id:
            raise MissingCredentialsError(
                f"Ozon client_id not set for integration {integration.id}"
            )
        return OzonClient(
            http,
            client_id=integration.client_id,
            api_key=integration.api_key,
            base_url=settings.ozon_api_base,
            retries=settings.http_retries,
        )
    if marketplace is Marketplace.YAMARKET:
        if not integration.campaign_id:
            raise MissingCredentialsError(
                f"Yandex Market campaign_id not set for integration {integration.id}"
            )
        return YandexMarketClient(
            http,
            campaign_id=integration.campaign_id,
            api_key=integration.api_key,
            base_url=settings.ym_api_base,
            retries=settings.http_retries,
        )
    raise UnsupportedMarketplaceError(f"Unsupported marketplace: {marketplace}")
