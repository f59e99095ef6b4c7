"""
SyncScheduler — interval-driven auto-sync of marketplace integrations.

An APScheduler interval job ("sync_tick") wakes the scheduler on a fixed
cadence. Each tick evaluates every configured integration:

    due = never finished a run  OR  now - last finish >= interval_minutes

Due integrations are taken in (interval_minutes, id) order so tight
schedules are never starved behind slower ones sharing a tick. Each one is
admitted through the SyncRunRegistry and, if admitted, run as a
fire-and-forget asyncio task. An integration that is still running is
rejected by the registry; that is logged as skipped, not treated as an error.

A failed run is retried on the next natural due tick only: retry cadence is
sync cadence, with no immediate retry and no backoff.

Lifecycle: start() once, stop() once. stop() stops admitting, then waits up
to the shutdown grace period for in-flight runs. Runs are never cancelled;
those still running after the grace period record their finish whenever
they complete.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from marketos.config import Settings, get_settings
from marketos.sync.errors import (
    DoubleFinishError,
    SchedulerNotRunningError,
    UnknownIntegrationError,
)
from marketos.sync.integrations import ScheduledIntegration
from marketos.sync.registry import (
    AdmissionTicket,
    SyncOutcome,
    SyncRun,
    SyncRunRegistry,
)
from marketos.sync.status import SyncStatus, SyncStatusStore

logger = logging.getLogger(__name__)

TICK_JOB_ID = "sync_tick"

_CREATED = "created"
_RUNNING = "running"
_STOPPED = "stopped"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SyncConfig:
    enabled: bool
    tick_seconds: int
    interval_minutes: Optional[int]
    integrations: Tuple[ScheduledIntegration, ...] = ()


class SyncScheduler:
    """Owns the tick loop and dispatches sync runs."""

    def __init__(
        self,
        client,
        integrations: Callable[[], Iterable[ScheduledIntegration]],
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _now_utc,
        listeners: Iterable[Callable[[SyncRun], None]] = (),
    ):
        """
        Args:
            client: Anything with ``async sync(integration_id) -> SyncResult``
                (IntegrationSyncService, or an AsyncMock in tests).
            integrations: Loads the integrations to schedule; called at start().
            settings: Defaults to get_settings().
            clock: Returns the current aware UTC datetime.
            listeners: Subscribed to the status store at start().
        """
        self._client = client
        self._load_integrations = integrations
        self.settings = settings or get_settings()
        self._clock = clock
        self._listeners = list(listeners)

        self._state = _CREATED
        self._enabled = self.settings.auto_sync_enabled
        # Serializes writers of _integrations and of the tick job. Readers
        # take no lock: the mapping is replaced wholesale, never edited.
        self._config_lock = threading.Lock()
        self._integrations: Dict[str, ScheduledIntegration] = {}
        self._registry: Optional[SyncRunRegistry] = None
        self._status: Optional[SyncStatusStore] = None
        self._aps: Optional[AsyncIOScheduler] = None
        self._tasks: Set[asyncio.Task] = set()

    # ─── Lifecycle ────────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._state == _RUNNING

    def start(self) -> bool:
        """
        Load integrations and begin ticking. Must be called from a running loop.

        Returns:
            True if started; False if already started or already stopped
            (both are logged, neither raises).
        """
        if self._state == _RUNNING:
            logger.warning("Sync scheduler already started; ignoring start()")
            return False
        if self._state == _STOPPED:
            logger.warning("Sync scheduler was stopped and cannot be restarted")
            return False

        self._integrations = {i.id: i for i in self._load_integrations()}
        self._registry = SyncRunRegistry(
            history_size=self.settings.run_history_size, clock=self._clock
        )
        self._status = SyncStatusStore(self._registry, self.integrations)
        for listener in self._listeners:
            self._status.on_update(listener)
        self._state = _RUNNING

        if self._enabled:
            with self._config_lock:
                self._add_tick_job()
            logger.info(
                "Sync scheduler started: %d integrations, tick every %ds",
                len(self._integrations), self.tick_seconds,
            )
        else:
            logger.info(
                "Sync scheduler started with auto-sync disabled (manual triggers only)"
            )
        return True

    async def stop(self) -> None:
        """Stop admitting runs and wait (bounded) for in-flight ones."""
        if self._state != _RUNNING:
            logger.warning("Sync scheduler is %s; ignoring stop()", self._state)
            return
        self._state = _STOPPED
        self._registry.close()
        if self._aps is not None:
            self._aps.shutdown(wait=False)

        pending = {t for t in self._tasks if not t.done()}
        if pending:
            grace = self.settings.sync_shutdown_grace_seconds
            logger.info("Waiting up to %.1fs for %d sync runs", grace, len(pending))
            _, still_running = await asyncio.wait(pending, timeout=grace)
            if still_running:
                logger.warning(
                    "%d sync runs still in flight after %.1fs; not waiting for them",
                    len(still_running), grace,
                )
        self._status.close()
        logger.info("Sync scheduler stopped")

    # ─── Configuration ────────────────────────────────────────────────────────

    def integrations(self) -> List[ScheduledIntegration]:
        """Configured integrations in tick evaluation order."""
        return sorted(self._integrations.values(), key=lambda i: i.sort_key)

    @property
    def tick_seconds(self) -> int:
        """Configured tick cadence, never longer than the smallest interval."""
        tick = self.settings.sync_tick_seconds
        if self._integrations:
            smallest = min(i.interval_minutes for i in self._integrations.values())
            tick = min(tick, smallest * 60)
        return max(tick, 1)

    def reconfigure(self, integration_id: str, interval_minutes: int) -> ScheduledIntegration:
        """
        Change an integration's sync interval.

        Raises:
            UnknownIntegrationError: if the integration is not scheduled.
            ValueError: if interval_minutes is not positive.
        """
        with self._config_lock:
            current = self._integrations.get(integration_id)
            if current is None:
                raise UnknownIntegrationError(integration_id)
            updated = replace(current, interval_minutes=interval_minutes)
            self._replace_integration(updated)
        logger.info(
            "Integration %s interval changed %d → %d min",
            integration_id, current.interval_minutes, interval_minutes,
        )
        return updated

    def add_integration(self, integration: ScheduledIntegration) -> None:
        """Schedule an integration created after start()."""
        with self._config_lock:
            if integration.id in self._integrations:
                raise ValueError(f"Integration {integration.id} is already scheduled")
            self._replace_integration(integration)
        logger.info(
            "Integration %s (%s) added, every %d min",
            integration.id, integration.marketplace.value, integration.interval_minutes,
        )

    @property
    def enabled(self) -> bool:
        """Whether the tick job runs. Manual triggers work either way."""
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        """
        Switch automatic syncing on or off at runtime.

        Adds or removes the tick job only; run history and in-flight runs are
        untouched. Turning it on ticks right away. Before start() the flag is
        just recorded and applied when the scheduler starts. Must be called
        from the event loop thread.
        """
        with self._config_lock:
            if enabled == self._enabled:
                return
            self._enabled = enabled
            if not self.running:
                return
            if enabled:
                self._add_tick_job()
            elif self._aps is not None:
                self._aps.remove_job(TICK_JOB_ID)
        logger.info("Auto-sync %s", "enabled" if enabled else "disabled")

    def _add_tick_job(self) -> None:
        # Caller holds _config_lock.
        if self._aps is None:
            self._aps = AsyncIOScheduler()
            self._aps.start()
        self._aps.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=self.tick_seconds),
            id=TICK_JOB_ID,
            name="Marketplace auto-sync tick",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
            next_run_time=datetime.now(timezone.utc),  # first tick right away
        )

    def _replace_integration(self, integration: ScheduledIntegration) -> None:
        # Caller holds _config_lock.
        old_tick = self.tick_seconds
        integrations = dict(self._integrations)
        integrations[integration.id] = integration
        self._integrations = integrations
        if (
            self._aps is not None
            and self._enabled
            and self.running
            and self.tick_seconds != old_tick
        ):
            self._aps.reschedule_job(
                TICK_JOB_ID, trigger=IntervalTrigger(seconds=self.tick_seconds)
            )

    # ─── Status ───────────────────────────────────────────────────────────────

    @property
    def status_store(self) -> Optional[SyncStatusStore]:
        return self._status

    @property
    def registry(self) -> Optional[SyncRunRegistry]:
        return self._registry

    def get_status(self) -> SyncStatus:
        if self._status is None:
            # Not started yet: an empty registry gives the "never synced" view.
            return SyncStatusStore(SyncRunRegistry(clock=self._clock), self.integrations).snapshot()
        return self._status.snapshot()

    def get_config(self) -> SyncConfig:
        integrations = tuple(self.integrations())
        return SyncConfig(
            enabled=self._enabled,
            tick_seconds=self.tick_seconds,
            interval_minutes=min((i.interval_minutes for i in integrations), default=None),
            integrations=integrations,
        )

    # ─── Ticking and dispatch ─────────────────────────────────────────────────

    def is_due(self, integration: ScheduledIntegration, now: datetime) -> bool:
        latest = self._registry.latest(integration.id)
        if latest is None:
            return True
        return now - latest.finished_at >= timedelta(minutes=integration.interval_minutes)

    async def tick(self, now: Optional[datetime] = None) -> List[str]:
        """
        One evaluation pass.

        Returns:
            Ids of the integrations dispatched on this tick.
        """
        if not self.running:
            return []
        now = now or self._clock()
        dispatched = []
        for integration in self.integrations():
            if not self.is_due(integration, now):
                continue
            if self.dispatch(integration.id, trigger="scheduler") is not None:
                dispatched.append(integration.id)
        return dispatched

    def dispatch(self, integration_id: str, trigger: str) -> Optional[AdmissionTicket]:
        """
        Admit and start one run. Must be called from the event loop thread.

        Returns:
            The admission ticket, or None if the integration is already syncing.

        Raises:
            SchedulerNotRunningError: before start() or after stop().
            UnknownIntegrationError: if the integration is not scheduled.
        """
        if not self.running:
            raise SchedulerNotRunningError(f"Sync scheduler is {self._state}")
        if integration_id not in self._integrations:
            raise UnknownIntegrationError(integration_id)

        ticket = self._registry.try_admit(integration_id, trigger=trigger)
        if ticket is None:
            logger.info("Sync for %s skipped (%s): already running", integration_id, trigger)
            return None

        task = asyncio.get_running_loop().create_task(self._execute(ticket))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return ticket

    async def _execute(self, ticket: AdmissionTicket) -> None:
        """Run unit: call the integration client and record the outcome exactly once."""
        logger.info(
            "Sync started for %s (run %d, %s)",
            ticket.integration_id, ticket.run_id, ticket.trigger,
        )
        outcome = SyncOutcome.FAILURE
        items_synced = 0
        error: Optional[str] = "sync run interrupted"
        try:
            result = await self._client.sync(ticket.integration_id)
            if result.skipped:
                outcome, error = SyncOutcome.SKIPPED, None
            elif result.error:
                error = result.error
            else:
                outcome, error = SyncOutcome.SUCCESS, None
                items_synced = result.items_synced
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
        finally:
            self._finish(ticket, outcome, items_synced, error)

    def _finish(
        self,
        ticket: AdmissionTicket,
        outcome: SyncOutcome,
        items_synced: int,
        error: Optional[str],
    ) -> None:
        try:
            run = self._registry.record_finish(
                ticket, outcome, items_synced=items_synced, error_detail=error
            )
        except DoubleFinishError:
            logger.exception("Sync run %d finished twice", ticket.run_id)
            raise

        if run.outcome is SyncOutcome.FAILURE:
            logger.warning(
                "Sync failed for %s (run %d): %s; next attempt in %s",
                run.integration_id, run.run_id, run.error_detail,
                self._interval_text(run.integration_id),
            )
        else:
            logger.info(
                "Sync %s for %s (run %d): %d items",
                run.outcome.value, run.integration_id, run.run_id, run.items_synced,
            )

    def _interval_text(self, integration_id: str) -> str:
        integration = self._integrations.get(integration_id)
        return f"{integration.interval_minutes} min" if integration else "next tick"


def build_scheduler(engine, http, settings: Optional[Settings] = None) -> SyncScheduler:
    """
    Create a SyncScheduler wired to the database and marketplace clients.

    Args:
        engine: SQLAlchemy engine.
        http: httpx.AsyncClient used by the marketplace clients.
        settings: Defaults to get_settings().

    Returns:
        Configured SyncScheduler (not yet started).
    """
    from marketos.sync.integrations import load_integrations
    from marketos.sync.recorder import SyncLogRecorder
    from marketos.sync.service import IntegrationSyncService

    settings = settings or get_settings()
    service = IntegrationSyncService(engine=engine, http=http, settings=settings)
    return SyncScheduler(
        client=service,
        integrations=lambda: load_integrations(engine),
        settings=settings,
        listeners=[SyncLogRecorder(engine)],
    )
