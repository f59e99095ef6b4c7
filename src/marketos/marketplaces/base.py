"""Marketplace client interface and the records clients return."""
import abc
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional


class MarketplaceError(RuntimeError):
    """Raised when a marketplace API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingCredentialsError(MarketplaceError):
    """Raised when an integration lacks the credentials its marketplace needs."""


class UnsupportedMarketplaceError(MarketplaceError):
    """Raised for a marketplace kind with no client."""


@dataclass
class ProductRecord:
    sku: str
    title: str = ""
    stock: int = 0
    price: Optional[float] = None
    category: Optional[str] = None


@dataclass
class SaleRecord:
    external_id: str
    sku: str
    sold_at: datetime
    qty: int = 1
    revenue: float = 0.0


def parse_datetime(value: str) -> datetime:
    """Parse the ISO-8601 timestamps marketplaces return (with or without 'Z')."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


class MarketplaceClient(abc.ABC):
    """One seller account on one marketplace."""

    marketplace: str = ""

    @abc.abstractmethod
    async def get_products(self) -> List[ProductRecord]:
        """Current catalogue with stock levels."""

    @abc.abstractmethod
    async def get_sales(self, date_from: datetime, date_to: datetime) -> List[SaleRecord]:
        """Sales and orders created in [date_from, date_to]."""
