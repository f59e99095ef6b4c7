"""Yandex Market Partner API client for one campaign."""
from datetime import datetime
from typing import Dict, List, Optional

import httpx

from marketos.marketplaces.base import (
    MarketplaceClient,
    ProductRecord,
    SaleRecord,
    parse_datetime,
)
from marketos.marketplaces.http import request_json


class YandexMarketClient(MarketplaceClient):
    marketplace = "YaMarket"

    def __init__(
        self,
        http: httpx.AsyncClient,
        campaign_id: str,
        api_key: str,
        base_url: str = "https://api.partner.market.yandex.ru",
        retries: int = 2,
    ):
        self._http = http
        self._campaign_id = campaign_id
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._retries = retries

    def _headers(self) -> Dict[str, str]:
        return {"Api-Key": self._api_key}

    async def _paged(self, path: str, body: dict, key: str) -> List[dict]:
        """Collect ``result[key]`` across all pages of a token-paged endpoint."""
        collected = []
        page_token: Optional[str] = None
        while True:
            params = {"page_token": page_token} if page_token else None
            data = await request_json(
                self._http,
                "POST",
                f"{self._base_url}/campaigns/{self._campaign_id}{path}",
                json=body,
                params=params,
                headers=self._headers(),
                retries=self._retries,
            )
            result = data.get("result") or {}
            collected.extend(result.get(key) or [])
            page_token = (result.get("paging") or {}).get("nextPageToken")
            if not page_token:
                return collected

    async def get_products(self) -> List[ProductRecord]:
        warehouses = await self._paged("/offers/stocks", {}, "warehouses")
        stock_by_sku: Dict[str, int] = {}
        for warehouse in warehouses:
            for offer in warehouse.get("offers") or []:
                sku = str(offer.get("offerId", ""))
                available = sum(
                    int(s.get("count") or 0)
                    for s in offer.get("stocks") or []
                    if s.get("type") == "FIT"
                )
                stock_by_sku[sku] = stock_by_sku.get(sku, 0) + available
        return [ProductRecord(sku=sku, stock=stock) for sku, stock in stock_by_sku.items()]

    async def get_sales(self, date_from: datetime, date_to: datetime) -> List[SaleRecord]:
        orders = await self._paged(
            "/stats/orders",
            {"dateFrom": date_from.strftime("%Y-%m-%d"), "dateTo": date_to.strftime("%Y-%m-%d")},
            "orders",
        )
        sales = []
        for order in orders:
            created = parse_datetime(order["creationDate"])
            for item in order.get("items") or []:
                buyer_total = sum(
                    float(p.get("total") or 0.0)
                    for p in item.get("prices") or []
                    if p.get("type") == "BUYER"
                )
                sales.append(
                    SaleRecord(
                        external_id=f"{order['id']}:{item.get('shopSku')}",
                        sku=str(item.get("shopSku", "")),
                        sold_at=created,
                        qty=int(item.get("count") or 1),
                        revenue=buyer_total,
                    )
                )
        return sales
