"""Marketplace integration model: one seller account on one marketplace."""
import enum
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlmodel import Field, SQLModel


class Marketplace(str, enum.Enum):
    WB = "WB"
    OZON = "Ozon"
    YAMARKET = "YaMarket"


class MarketplaceIntegration(SQLModel, table=True):
    """A configured marketplace account whose data is synced periodically."""

    id: str = Field(default_factory=lambda: uuid4().hex, primary_key=True)
    marketplace: Marketplace
    name: str = ""
    interval_minutes: int = Field(default=5, gt=0)
    is_active: bool = True

    # Credentials. Ozon additionally needs client_id, Yandex Market a campaign_id.
    api_key: str = ""
    client_id: Optional[str] = None
    campaign_id: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
