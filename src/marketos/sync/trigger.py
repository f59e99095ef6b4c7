"""
ManualTrigger — user-initiated "sync now".

Skips the due check but goes through the same registry admission as the
scheduler tick. Repeated requests while a run is in flight are answered with
BUSY and never queue a second run. A finished manual run becomes the
integration's latest run, so the next scheduled sync is one interval after it.
"""
import enum
import logging
from typing import Dict

logger = logging.getLogger(__name__)


class TriggerResult(str, enum.Enum):
    STARTED = "started"
    BUSY = "busy"


class ManualTrigger:
    def __init__(self, scheduler):
        self._scheduler = scheduler

    def request_now(self, integration_id: str) -> TriggerResult:
        """
        Raises:
            UnknownIntegrationError: if the integration is not scheduled.
            SchedulerNotRunningError: if the scheduler is not running.
        """
        ticket = self._scheduler.dispatch(integration_id, trigger="manual")
        if ticket is None:
            return TriggerResult.BUSY
        logger.info("Manual sync requested for %s (run %d)", integration_id, ticket.run_id)
        return TriggerResult.STARTED

    def request_all(self) -> Dict[str, TriggerResult]:
        """Request every integration, in the scheduler's evaluation order."""
        return {
            integration.id: self.request_now(integration.id)
            for integration in self._scheduler.integrations()
        }
