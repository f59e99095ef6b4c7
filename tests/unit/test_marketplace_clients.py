"""Tests for the Wildberries, Ozon and Yandex Market clients against mocked HTTP."""
import json
from datetime import datetime, timezone

import httpx
import pytest

from marketos.marketplaces.base import parse_datetime
from marketos.marketplaces.ozon import OzonClient
from marketos.marketplaces.wildberries import WildberriesClient
from marketos.marketplaces.yandex_market import YandexMarketClient

DATE_FROM = datetime(2025, 2, 1, tzinfo=timezone.utc)
DATE_TO = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_parse_datetime_with_z_suffix():
    assert parse_datetime("2025-02-10T08:30:00Z") == datetime(2025, 2, 10, 8, 30, tzinfo=timezone.utc)


def test_parse_datetime_naive():
    assert parse_datetime("2025-02-10T08:30:00") == datetime(2025, 2, 10, 8, 30)


# ─── Wildberries ───────────────────────────────────────────────────────────────

class TestWildberriesClient:
    @pytest.mark.asyncio
    async def test_products_summed_per_article(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[
                {"supplierArticle": "A-1", "subject": "T-shirt", "category": "Apparel",
                 "Price": 990, "quantity": 3},
                {"supplierArticle": "A-1", "subject": "T-shirt", "quantity": 2},
                {"supplierArticle": "B-2", "subject": "Cap", "quantity": 0},
                {"quantity": 7},
            ])

        async with _http(handler) as http:
            products = await WildberriesClient(http, api_key="tok", base_url="https://wb.test").get_products()

        assert [(p.sku, p.stock) for p in products] == [("A-1", 5), ("B-2", 0)]
        assert products[0].title == "T-shirt"
        assert products[0].price == 990
        assert seen[0].headers["Authorization"] == "tok"
        assert seen[0].url.path == "/api/v1/supplier/stocks"

    @pytest.mark.asyncio
    async def test_sales_and_returns(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[
                {"saleID": "S100", "supplierArticle": "A-1", "date": "2025-02-10T08:30:00",
                 "forPay": 850.5},
                {"saleID": "R200", "supplierArticle": "A-1", "date": "2025-02-11T09:00:00",
                 "forPay": -850.5},
                {"saleID": "S300", "supplierArticle": "A-1", "date": "2025-03-02T09:00:00",
                 "forPay": 100},
                {"supplierArticle": "A-1", "date": "2025-02-12T09:00:00"},
            ])

        async with _http(handler) as http:
            sales = await WildberriesClient(http, api_key="tok", base_url="https://wb.test").get_sales(
                DATE_FROM, DATE_TO
            )

        assert [(s.external_id, s.qty) for s in sales] == [("S100", 1), ("R200", -1)]
        assert sales[0].revenue == 850.5
        assert seen[0].url.params["dateFrom"] == "2025-02-01"


# ─── Ozon ─────────────────────────────────────────────────────────────────────

class TestOzonClient:
    @pytest.mark.asyncio
    async def test_products_follow_cursor(self):
        bodies = []

        def handler(request):
            body = json.loads(request.content)
            bodies.append(body)
            if not body["cursor"]:
                return httpx.Response(200, json={
                    "items": [{"offer_id": "O-1", "stocks": [{"present": 4}, {"present": 1}]}],
                    "cursor": "next",
                })
            return httpx.Response(200, json={
                "items": [{"offer_id": "O-2", "stocks": []}],
                "cursor": "",
            })

        async with _http(handler) as http:
            client = OzonClient(http, client_id="42", api_key="key", base_url="https://ozon.test")
            products = await client.get_products()

        assert [(p.sku, p.stock) for p in products] == [("O-1", 5), ("O-2", 0)]
        assert [b["cursor"] for b in bodies] == ["", "next"]

    @pytest.mark.asyncio
    async def test_headers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"items": [], "cursor": ""})

        async with _http(handler) as http:
            await OzonClient(http, client_id="42", api_key="key", base_url="https://ozon.test").get_products()

        assert seen[0].headers["Client-Id"] == "42"
        assert seen[0].headers["Api-Key"] == "key"

    @pytest.mark.asyncio
    async def test_sales_one_record_per_line(self):
        def handler(request):
            assert request.url.path == "/v2/posting/fbo/list"
            return httpx.Response(200, json={"result": [
                {
                    "posting_number": "P-1",
                    "created_at": "2025-02-10T08:30:00Z",
                    "products": [
                        {"offer_id": "O-1", "quantity": 2, "price": "150.00"},
                        {"offer_id": "O-2", "quantity": 1, "price": "99.90"},
                    ],
                },
            ]})

        async with _http(handler) as http:
            client = OzonClient(http, client_id="42", api_key="key", base_url="https://ozon.test")
            sales = await client.get_sales(DATE_FROM, DATE_TO)

        assert [s.external_id for s in sales] == ["P-1:O-1", "P-1:O-2"]
        assert sales[0].qty == 2
        assert sales[0].revenue == 300.0
        assert sales[0].sold_at.tzinfo is not None


# ─── Yandex Market ────────────────────────────────────────────────────────────

class TestYandexMarketClient:
    @pytest.mark.asyncio
    async def test_products_count_fit_stock_across_pages(self):
        seen = []

        def handler(request):
            seen.append(request)
            if "page_token" not in request.url.params:
                return httpx.Response(200, json={"result": {
                    "warehouses": [{"offers": [{"offerId": "Y-1", "stocks": [
                        {"type": "FIT", "count": 3},
                        {"type": "DEFECT", "count": 9},
                    ]}]}],
                    "paging": {"nextPageToken": "p2"},
                }})
            return httpx.Response(200, json={"result": {
                "warehouses": [{"offers": [{"offerId": "Y-1", "stocks": [{"type": "FIT", "count": 2}]}]}],
                "paging": {},
            }})

        async with _http(handler) as http:
            client = YandexMarketClient(http, campaign_id="77", api_key="key", base_url="https://ym.test")
            products = await client.get_products()

        assert [(p.sku, p.stock) for p in products] == [("Y-1", 5)]
        assert seen[0].url.path == "/campaigns/77/offers/stocks"
        assert seen[1].url.params["page_token"] == "p2"
        assert seen[0].headers["Api-Key"] == "key"

    @pytest.mark.asyncio
    async def test_sales_use_buyer_total(self):
        def handler(request):
            body = json.loads(request.content)
            assert body == {"dateFrom": "2025-02-01", "dateTo": "2025-03-01"}
            return httpx.Response(200, json={"result": {"orders": [
                {
                    "id": 9001,
                    "creationDate": "2025-02-15T10:00:00+03:00",
                    "items": [{
                        "shopSku": "Y-1",
                        "count": 2,
                        "prices": [
                            {"type": "BUYER", "total": 1200.0},
                            {"type": "MARKETPLACE", "total": 100.0},
                        ],
                    }],
                },
            ]}})

        async with _http(handler) as http:
            client = YandexMarketClient(http, campaign_id="77", api_key="key", base_url="https://ym.test")
            sales = await client.get_sales(DATE_FROM, DATE_TO)

        assert len(sales) == 1
        assert sales[0].external_id == "9001:Y-1"
        assert sales[0].qty == 2
        assert sales[0].revenue == 1200.0
