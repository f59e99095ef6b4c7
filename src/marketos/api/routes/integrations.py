"""Integration management routes. Credentials are write-only."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import Session, select

from marketos.api.deps import get_scheduler, get_session
from marketos.config import get_settings
from marketos.models.integration import Marketplace, MarketplaceIntegration
from marketos.sync.integrations import ScheduledIntegration
from marketos.sync.scheduler import SyncScheduler

router = APIRouter()


class IntegrationCreate(BaseModel):
    marketplace: Marketplace
    name: str = ""
    api_key: str
    client_id: Optional[str] = None
    campaign_id: Optional[str] = None
    interval_minutes: Optional[int] = Field(default=None, gt=0)
    is_active: bool = True


class IntegrationUpdate(BaseModel):
    name: Optional[str] = None
    interval_minutes: Optional[int] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


class IntegrationResponse(BaseModel):
    id: str
    marketplace: Marketplace
    name: str
    interval_minutes: int
    is_active: bool
    has_credentials: bool
    created_at: datetime

    @classmethod
    def from_model(cls, row: MarketplaceIntegration) -> "IntegrationResponse":
        return cls(
            id=row.id,
            marketplace=row.marketplace,
            name=row.name,
            interval_minutes=row.interval_minutes,
            is_active=row.is_active,
            has_credentials=bool(row.api_key),
            created_at=row.created_at,
        )


@router.get("", response_model=List[IntegrationResponse])
def list_integrations(session: Session = Depends(get_session)):
    rows = session.exec(
        select(MarketplaceIntegration).order_by(MarketplaceIntegration.created_at)
    ).all()
    return [IntegrationResponse.from_model(r) for r in rows]


@router.post("", response_model=IntegrationResponse, status_code=201)
def create_integration(
    body: IntegrationCreate,
    session: Session = Depends(get_session),
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    row = MarketplaceIntegration(
        marketplace=body.marketplace,
        name=body.name,
        api_key=body.api_key,
        client_id=body.client_id,
        campaign_id=body.campaign_id,
        interval_minutes=body.interval_minutes or get_settings().default_sync_interval_minutes,
        is_active=body.is_active,
    )
    session.add(row)
    session.commit()
    session.refresh(row)

    if row.is_active and scheduler.running:
        scheduler.add_integration(ScheduledIntegration.from_model(row))
    return IntegrationResponse.from_model(row)


@router.patch("/{integration_id}", response_model=IntegrationResponse)
def update_integration(
    integration_id: str,
    body: IntegrationUpdate,
    session: Session = Depends(get_session),
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    """Update name, interval or active flag.

    A changed interval takes effect in the running scheduler immediately.
    Deactivated integrations stay scheduled but their runs end as skipped.
    """
    row = session.get(MarketplaceIntegration, integration_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Integration not found")

    if body.name is not None:
        row.name = body.name
    if body.interval_minutes is not None:
        row.interval_minutes = body.interval_minutes
    if body.is_active is not None:
        row.is_active = body.is_active
    session.add(row)
    session.commit()
    session.refresh(row)

    if scheduler.running:
        known = {i.id for i in scheduler.integrations()}
        if row.id in known and body.interval_minutes is not None:
            scheduler.reconfigure(row.id, row.interval_minutes)
        elif row.id not in known and row.is_active:
            scheduler.add_integration(ScheduledIntegration.from_model(row))
    return IntegrationResponse.from_model(row)
