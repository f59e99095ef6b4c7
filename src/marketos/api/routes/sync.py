"""Sync status, config, trigger and history routes."""
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from marketos.api.deps import get_scheduler, get_session
from marketos.models.sync import SyncLog
from marketos.sync.errors import SchedulerNotRunningError, UnknownIntegrationError
from marketos.sync.scheduler import SyncScheduler
from marketos.sync.trigger import ManualTrigger

router = APIRouter()


class IntegrationStatusResponse(BaseModel):
    integration_id: str
    marketplace: str
    interval_minutes: int
    running: bool
    last_sync: Optional[datetime]
    last_finished_at: Optional[datetime]
    last_outcome: Optional[str]
    last_error: Optional[str]
    next_sync: Optional[datetime]
    items_synced: int


class SyncStatusResponse(BaseModel):
    last_sync: Optional[datetime]
    last_error: Optional[str]
    next_sync: Optional[datetime]
    running_count: int
    interval_minutes: Optional[int]
    scheduler_running: bool
    integrations: List[IntegrationStatusResponse]


class IntegrationConfigResponse(BaseModel):
    integration_id: str
    marketplace: str
    interval_minutes: int


class SyncConfigResponse(BaseModel):
    enabled: bool
    tick_seconds: int
    interval_minutes: Optional[int]
    integrations: List[IntegrationConfigResponse]


class SyncConfigUpdate(BaseModel):
    enabled: bool


class SyncTriggerRequest(BaseModel):
    integration_id: Optional[str] = None  # If None, requests every integration


class SyncTriggerResponse(BaseModel):
    result: Optional[str] = None
    results: Optional[Dict[str, str]] = None


@router.get("/status", response_model=SyncStatusResponse)
def sync_status(scheduler: SyncScheduler = Depends(get_scheduler)):
    """Point-in-time auto-sync status. Safe to poll."""
    status = scheduler.get_status()
    return SyncStatusResponse(
        last_sync=status.last_sync,
        last_error=status.last_error,
        next_sync=status.next_sync,
        running_count=status.running_count,
        interval_minutes=status.interval_minutes,
        scheduler_running=scheduler.running,
        integrations=[
            IntegrationStatusResponse(
                integration_id=item.integration_id,
                marketplace=item.marketplace.value,
                interval_minutes=item.interval_minutes,
                running=item.running,
                last_sync=item.last_sync,
                last_finished_at=item.last_finished_at,
                last_outcome=item.last_outcome.value if item.last_outcome else None,
                last_error=item.last_error,
                next_sync=item.next_sync,
                items_synced=item.items_synced,
            )
            for item in status.integrations
        ],
    )


def _config_response(scheduler: SyncScheduler) -> SyncConfigResponse:
    config = scheduler.get_config()
    return SyncConfigResponse(
        enabled=config.enabled,
        tick_seconds=config.tick_seconds,
        interval_minutes=config.interval_minutes,
        integrations=[
            IntegrationConfigResponse(
                integration_id=i.id,
                marketplace=i.marketplace.value,
                interval_minutes=i.interval_minutes,
            )
            for i in config.integrations
        ],
    )


@router.get("/config", response_model=SyncConfigResponse)
def sync_config(scheduler: SyncScheduler = Depends(get_scheduler)):
    return _config_response(scheduler)


@router.patch("/config", response_model=SyncConfigResponse)
async def update_sync_config(
    update: SyncConfigUpdate,
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    """
    Switch auto-sync on or off. Integrations, history and manual triggers are
    untouched; switching on starts a tick right away.
    """
    scheduler.set_enabled(update.enabled)
    return _config_response(scheduler)


@router.post("/trigger", response_model=SyncTriggerResponse)
async def trigger_sync(
    request: SyncTriggerRequest,
    scheduler: SyncScheduler = Depends(get_scheduler),
):
    """
    Request an immediate sync. Returns right away; the run continues in the
    background. "busy" means a sync for that integration is already running.
    """
    trigger = ManualTrigger(scheduler)
    try:
        if request.integration_id:
            return SyncTriggerResponse(result=trigger.request_now(request.integration_id).value)
        results = trigger.request_all()
    except UnknownIntegrationError:
        raise HTTPException(status_code=404, detail="Integration not found")
    except SchedulerNotRunningError:
        raise HTTPException(status_code=503, detail="Sync scheduler is not running")
    return SyncTriggerResponse(results={k: v.value for k, v in results.items()})


@router.get("/history", response_model=List[SyncLog])
def sync_history(
    integration_id: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=500),
    session: Session = Depends(get_session),
):
    """Persisted run log, newest first."""
    query = select(SyncLog)
    if integration_id:
        query = query.where(SyncLog.integration_id == integration_id)
    return session.exec(query.order_by(SyncLog.id.desc()).limit(limit)).all()
