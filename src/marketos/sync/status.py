"""
SyncStatusStore — immutable sync status snapshots for UI-facing readers.

Every ``snapshot()`` is rebuilt from one ``RegistryView`` (a copy taken under
the registry lock), so all fields describe the same instant and readers never
see a half-applied run completion. Nothing here is mutated in place.

Field semantics:
  last_sync    — finish time of the most recent successful run, any integration
  last_error   — newest failure among integrations whose failure is not yet
                 cleared by a later success
  next_sync    — earliest (last finish + interval) over integrations that
                 have finished at least one run
  running_count — runs admitted and not yet finished
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Tuple

from marketos.models.integration import Marketplace
from marketos.sync.integrations import ScheduledIntegration
from marketos.sync.registry import SyncOutcome, SyncRun, SyncRunRegistry


@dataclass(frozen=True)
class IntegrationStatus:
    integration_id: str
    marketplace: Marketplace
    interval_minutes: int
    running: bool
    last_sync: Optional[datetime]
    last_finished_at: Optional[datetime]
    last_outcome: Optional[SyncOutcome]
    last_error: Optional[str]
    next_sync: Optional[datetime]
    items_synced: int


@dataclass(frozen=True)
class SyncStatus:
    taken_at: datetime
    last_sync: Optional[datetime]
    last_error: Optional[str]
    next_sync: Optional[datetime]
    running_count: int
    interval_minutes: Optional[int]
    integrations: Tuple[IntegrationStatus, ...] = ()

    def for_integration(self, integration_id: str) -> Optional[IntegrationStatus]:
        for item in self.integrations:
            if item.integration_id == integration_id:
                return item
        return None


class SyncStatusStore:
    """Read side of the auto-sync core."""

    def __init__(
        self,
        registry: SyncRunRegistry,
        integrations: Callable[[], Iterable[ScheduledIntegration]],
    ):
        """
        Args:
            registry: The run registry to read from.
            integrations: Returns the currently configured integrations.
        """
        self._registry = registry
        self._integrations = integrations
        self._unsubscribers = []

    def snapshot(self) -> SyncStatus:
        configured = sorted(self._integrations(), key=lambda i: i.sort_key)
        view = self._registry.view()

        items = []
        last_failure: Optional[SyncRun] = None
        for integration in configured:
            state = view.integrations.get(integration.id)
            latest = state.latest if state else None
            success = state.last_success if state else None
            failure = state.last_failure if state else None

            next_sync = None
            if latest is not None:
                next_sync = latest.finished_at + timedelta(
                    minutes=integration.interval_minutes
                )
            if failure is not None and (
                last_failure is None or failure.finished_at > last_failure.finished_at
            ):
                last_failure = failure

            items.append(
                IntegrationStatus(
                    integration_id=integration.id,
                    marketplace=integration.marketplace,
                    interval_minutes=integration.interval_minutes,
                    running=bool(state and state.running),
                    last_sync=success.finished_at if success else None,
                    last_finished_at=latest.finished_at if latest else None,
                    last_outcome=latest.outcome if latest else None,
                    last_error=failure.error_detail if failure else None,
                    next_sync=next_sync,
                    items_synced=latest.items_synced if latest else 0,
                )
            )

        last_syncs = [i.last_sync for i in items if i.last_sync is not None]
        next_syncs = [i.next_sync for i in items if i.next_sync is not None]
        return SyncStatus(
            taken_at=view.taken_at,
            last_sync=max(last_syncs) if last_syncs else None,
            last_error=last_failure.error_detail if last_failure else None,
            next_sync=min(next_syncs) if next_syncs else None,
            running_count=view.running_count,
            interval_minutes=min((i.interval_minutes for i in configured), default=None),
            integrations=tuple(items),
        )

    def on_update(self, callback: Callable[[SyncRun], None]) -> Callable[[], None]:
        """Register ``callback`` to receive each finished run.

        Purely a polling shortcut: callbacks run after the run is recorded and
        their errors are logged, never raised into the run.
        """
        unsubscribe = self._registry.add_listener(callback)
        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    def close(self) -> None:
        """Drop all subscribers. Snapshots stay readable."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
