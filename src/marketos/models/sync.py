"""Sync audit log model."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class SyncLog(SQLModel, table=True):
    """Records each finished sync run for audit and debugging."""

    id: Optional[int] = Field(default=None, primary_key=True)
    integration_id: str = Field(index=True)
    run_id: int = 0
    trigger: str = "scheduler"  # "scheduler", "manual"
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    outcome: str = "success"  # "success", "failure", "skipped"
    items_synced: int = 0
    error_message: Optional[str] = None
