"""
SyncRunRegistry — in-flight and finished run state per integration.

The registry is the single serialization point of the auto-sync core:
``try_admit`` atomically checks and sets the per-integration running flag, so
a scheduler tick and a manual trigger can never both start a run for the same
integration. Everything else (scheduler, status store, manual trigger) relies
on it instead of locking on its own.

All state is guarded by one ``threading.Lock`` so readers on other threads
(API worker threads, the bot) always see a consistent view. Records handed
out are copies; internal runs are only changed through ``record_finish``.
"""
import enum
import itertools
import logging
import threading
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, Deque, Dict, List, Optional

from marketos.sync.errors import DoubleFinishError

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class SyncOutcome(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


@dataclass
class SyncRun:
    """One sync attempt for one integration."""

    run_id: int
    integration_id: str
    trigger: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    outcome: Optional[SyncOutcome] = None
    items_synced: int = 0
    error_detail: Optional[str] = None

    @property
    def running(self) -> bool:
        return self.finished_at is None


@dataclass(frozen=True)
class AdmissionTicket:
    """Exclusive right to run one sync for one integration."""

    run_id: int
    integration_id: str
    trigger: str
    started_at: datetime


@dataclass(frozen=True)
class IntegrationRunState:
    running: bool
    latest: Optional[SyncRun]
    last_success: Optional[SyncRun]
    last_failure: Optional[SyncRun]


@dataclass(frozen=True)
class RegistryView:
    """Copy of the whole registry taken under a single lock acquisition."""

    taken_at: datetime
    running_count: int
    integrations: Dict[str, IntegrationRunState] = field(default_factory=dict)


class SyncRunRegistry:
    """Tracks run lifecycle and enforces at most one running sync per integration."""

    def __init__(self, history_size: int = 50, clock: Clock = _now_utc):
        self._lock = threading.Lock()
        self._clock = clock
        self._history_size = history_size
        self._run_ids = itertools.count(1)
        self._closed = False

        self._in_flight: Dict[str, SyncRun] = {}
        self._history: Dict[str, Deque[SyncRun]] = {}
        # Kept apart from the bounded history so they survive trimming.
        self._last_success: Dict[str, SyncRun] = {}
        self._last_failure: Dict[str, SyncRun] = {}

        self._listeners: List[Callable[[SyncRun], None]] = []

    # ─── Admission ────────────────────────────────────────────────────────────

    def try_admit(
        self, integration_id: str, trigger: str = "scheduler"
    ) -> Optional[AdmissionTicket]:
        """Claim the running flag for an integration.

        Returns:
            A ticket, or None if a run is already in flight (or the registry
            has been closed). Rejection is an expected outcome, not an error.
        """
        with self._lock:
            if self._closed or integration_id in self._in_flight:
                return None
            run = SyncRun(
                run_id=next(self._run_ids),
                integration_id=integration_id,
                trigger=trigger,
                started_at=self._clock(),
            )
            self._in_flight[integration_id] = run
            return AdmissionTicket(
                run_id=run.run_id,
                integration_id=integration_id,
                trigger=trigger,
                started_at=run.started_at,
            )

    def record_finish(
        self,
        ticket: AdmissionTicket,
        outcome: SyncOutcome,
        *,
        items_synced: int = 0,
        error_detail: Optional[str] = None,
    ) -> SyncRun:
        """Finalize the run behind ``ticket`` and release its running flag.

        Must be the last operation on a ticket.

        Raises:
            DoubleFinishError: if the ticket was already finished. The registry
                is left unchanged.
        """
        with self._lock:
            run = self._in_flight.get(ticket.integration_id)
            if run is None or run.run_id != ticket.run_id:
                raise DoubleFinishError(
                    f"run {ticket.run_id} for integration "
                    f"{ticket.integration_id} was already finished"
                )
            run.finished_at = self._clock()
            run.outcome = SyncOutcome(outcome)
            run.items_synced = items_synced
            run.error_detail = error_detail if run.outcome is SyncOutcome.FAILURE else None

            del self._in_flight[ticket.integration_id]
            history = self._history.setdefault(
                ticket.integration_id, deque(maxlen=self._history_size)
            )
            history.append(run)
            if run.outcome is SyncOutcome.SUCCESS:
                self._last_success[ticket.integration_id] = run
                self._last_failure.pop(ticket.integration_id, None)
            elif run.outcome is SyncOutcome.FAILURE:
                self._last_failure[ticket.integration_id] = run
            finished = replace(run)
            listeners = list(self._listeners)

        for callback in listeners:
            try:
                callback(replace(finished))
            except Exception:
                logger.exception("Sync update listener %r failed", callback)
        return finished

    def close(self) -> None:
        """Decline every admission from now on."""
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    # ─── Reads ────────────────────────────────────────────────────────────────

    def latest(self, integration_id: str) -> Optional[SyncRun]:
        """Most recently finished run, or None if the integration never finished one."""
        with self._lock:
            history = self._history.get(integration_id)
            return replace(history[-1]) if history else None

    def history(self, integration_id: str) -> List[SyncRun]:
        """Finished runs, oldest first."""
        with self._lock:
            return [replace(r) for r in self._history.get(integration_id, ())]

    def is_running(self, integration_id: str) -> bool:
        with self._lock:
            return integration_id in self._in_flight

    def running_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def view(self) -> RegistryView:
        with self._lock:
            ids = set(self._history) | set(self._in_flight)
            states = {}
            for integration_id in ids:
                history = self._history.get(integration_id)
                success = self._last_success.get(integration_id)
                failure = self._last_failure.get(integration_id)
                states[integration_id] = IntegrationRunState(
                    running=integration_id in self._in_flight,
                    latest=replace(history[-1]) if history else None,
                    last_success=replace(success) if success else None,
                    last_failure=replace(failure) if failure else None,
                )
            return RegistryView(
                taken_at=self._clock(),
                running_count=len(self._in_flight),
                integrations=states,
            )

    # ─── Listeners ────────────────────────────────────────────────────────────

    def add_listener(self, callback: Callable[[SyncRun], None]) -> Callable[[], None]:
        """Call ``callback`` with each finished run. Returns an unsubscribe function."""
        with self._lock:
            self._listeners.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return _unsubscribe

    def clear_listeners(self) -> None:
        with self._lock:
            self._listeners.clear()
