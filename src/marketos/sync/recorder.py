"""Persists finished sync runs as SyncLog rows."""
from sqlmodel import Session

from marketos.models.sync import SyncLog
from marketos.sync.registry import SyncRun


class SyncLogRecorder:
    """Status-store subscriber that writes one SyncLog row per finished run."""

    def __init__(self, engine):
        self.engine = engine

    def __call__(self, run: SyncRun) -> None:
        log = SyncLog(
            integration_id=run.integration_id,
            run_id=run.run_id,
            trigger=run.trigger,
            # SQLite keeps naive datetimes; runs are stamped in UTC
            started_at=run.started_at.replace(tzinfo=None),
            finished_at=run.finished_at.replace(tzinfo=None) if run.finished_at else None,
            outcome=run.outcome.value if run.outcome else "failure",
            items_synced=run.items_synced,
            error_message=run.error_detail,
        )
        with Session(self.engine) as s:
            s.add(log)
            s.commit()
