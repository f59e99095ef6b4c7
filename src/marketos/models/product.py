"""Synced marketplace catalogue and sales rows.

Rows are keyed per integration so re-syncing the same window updates in place
instead of duplicating data.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class MarketplaceProduct(SQLModel, table=True):
    """Latest known state of one SKU on one integration."""

    __table_args__ = (UniqueConstraint("integration_id", "sku"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    integration_id: str = Field(index=True, foreign_key="marketplaceintegration.id")
    sku: str
    title: str = ""
    category: Optional[str] = None
    price: Optional[float] = None
    stock: int = 0
    synced_at: datetime = Field(default_factory=datetime.utcnow)


class MarketplaceSale(SQLModel, table=True):
    """One sale or order line reported by a marketplace."""

    __table_args__ = (UniqueConstraint("integration_id", "external_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    integration_id: str = Field(index=True, foreign_key="marketplaceintegration.id")
    external_id: str
    sku: str
    sold_at: datetime
    qty: int = 1
    revenue: float = 0.0
    synced_at: datetime = Field(default_factory=datetime.utcnow)
