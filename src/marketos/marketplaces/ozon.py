"""Ozon Seller API client (stocks and FBO postings)."""
from datetime import datetime
from typing import Dict, List

import httpx

from marketos.marketplaces.base import (
    MarketplaceClient,
    ProductRecord,
    SaleRecord,
    parse_datetime,
)
from marketos.marketplaces.http import request_json

PAGE_SIZE = 1000


class OzonClient(MarketplaceClient):
    marketplace = "Ozon"

    def __init__(
        self,
        http: httpx.AsyncClient,
        client_id: str,
        api_key: str,
        base_url: str = "https://api-seller.ozon.ru",
        retries: int = 2,
    ):
        self._http = http
        self._client_id = client_id
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._retries = retries

    def _headers(self) -> Dict[str, str]:
        return {"Client-Id": self._client_id, "Api-Key": self._api_key}

    async def _post(self, path: str, body: dict):
        return await request_json(
            self._http,
            "POST",
            f"{self._base_url}{path}",
            json=body,
            headers=self._headers(),
            retries=self._retries,
        )

    async def get_products(self) -> List[ProductRecord]:
        products = []
        cursor = ""
        while True:
            data = await self._post(
                "/v4/product/info/stocks",
                {"filter": {"visibility": "ALL"}, "limit": PAGE_SIZE, "cursor": cursor},
            )
            items = data.get("items") or []
            for item in items:
                stock = sum(int(s.get("present") or 0) for s in item.get("stocks") or [])
                products.append(ProductRecord(sku=str(item.get("offer_id", "")), stock=stock))
            cursor = data.get("cursor") or ""
            if not items or not cursor:
                break
        return products

    async def get_sales(self, date_from: datetime, date_to: datetime) -> List[SaleRecord]:
        sales = []
        offset = 0
        while True:
            data = await self._post(
                "/v2/posting/fbo/list",
                {
                    "dir": "ASC",
                    "filter": {"since": date_from.isoformat(), "to": date_to.isoformat()},
                    "limit": PAGE_SIZE,
                    "offset": offset,
                },
            )
            postings = data.get("result") or []
            for posting in postings:
                created = parse_datetime(posting["created_at"])
                for line in posting.get("products") or []:
                    qty = int(line.get("quantity") or 1)
                    sales.append(
                        SaleRecord(
                            external_id=f"{posting['posting_number']}:{line.get('offer_id')}",
                            sku=str(line.get("offer_id", "")),
                            sold_at=created,
                            qty=qty,
                            revenue=float(line.get("price") or 0.0) * qty,
                        )
                    )
            if len(postings) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
        return sales
