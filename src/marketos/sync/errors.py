"""Exceptions raised by the auto-sync core.

A rejected admission (integration already syncing) is not an exception: it is
reported as ``None`` from ``SyncRunRegistry.try_admit`` and as
``TriggerResult.BUSY`` from the manual trigger.
"""


class DoubleFinishError(RuntimeError):
    """Raised when a run ticket is finished more than once."""


class UnknownIntegrationError(KeyError):
    """Raised when an integration id is not known to the scheduler."""

    def __str__(self):
        # KeyError would repr() the id; this text ends up in last_error.
        if not self.args:
            return "Unknown integration"
        return f"Unknown integration: {self.args[0]}"


class SchedulerNotRunningError(RuntimeError):
    """Raised when a run is requested from a scheduler that is not running."""
