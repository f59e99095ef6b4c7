"""
Wildberries statistics API client.

Stocks come back one row per (article, warehouse); they are summed per
supplier article. Sales rows with a saleID starting with "R" are returns and
are stored with qty=-1.
"""
from collections import OrderedDict
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


class WildberriesClient(MarketplaceClient):
    marketplace = "WB"

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        base_url: str = "https://statistics-api.wildberries.ru",
        retries: int = 2,
    ):
        self._http = http
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._retries = retries

    def _headers(self) -> Dict[str, str]:
        # WB takes the raw token, no "Bearer" prefix
        return {"Authorization": self._api_key}

    async def _get(self, path: str, params: dict):
        return await request_json(
            self._http,
            "GET",
            f"{self._base_url}{path}",
            params=params,
            headers=self._headers(),
            retries=self._retries,
        )

    async def get_products(self) -> List[ProductRecord]:
        # dateFrom far in the past returns the full current stock picture
        rows = await self._get("/api/v1/supplier/stocks", {"dateFrom": "2019-06-20"})

        products: "OrderedDict[str, ProductRecord]" = OrderedDict()
        for row in rows or []:
            sku = str(row.get("supplierArticle") or row.get("nmId") or "")
            if not sku:
                continue
            product = products.get(sku)
            if product is None:
                product = ProductRecord(
                    sku=sku,
                    title=row.get("subject") or "",
                    category=row.get("category"),
                    price=row.get("Price"),
                )
                products[sku] = product
            product.stock += int(row.get("quantity") or 0)
        return list(products.values())

    async def get_sales(self, date_from: datetime, date_to: datetime) -> List[SaleRecord]:
        rows = await self._get(
            "/api/v1/supplier/sales", {"dateFrom": date_from.strftime("%Y-%m-%d")}
        )

        sales = []
        for row in rows or []:
            sale_id = row.get("saleID")
            if not sale_id or not row.get("date"):
                continue
            sold_at = parse_datetime(row["date"])
            if sold_at.replace(tzinfo=None) > date_to.replace(tzinfo=None):
                continue
            sales.append(
                SaleRecord(
                    external_id=str(sale_id),
                    sku=str(row.get("supplierArticle") or row.get("nmId") or ""),
                    sold_at=sold_at,
                    qty=-1 if str(sale_id).startswith("R") else 1,
                    revenue=float(row.get("forPay") or 0.0),
                )
            )
        return sales
