"""Scheduler-side view of configured integrations."""
from dataclasses import dataclass
from typing import List

from sqlmodel import Session, select

from marketos.models.integration import Marketplace, MarketplaceIntegration


@dataclass(frozen=True)
class ScheduledIntegration:
    """What the scheduler needs to know about an integration: who and how often."""

    id: str
    marketplace: Marketplace
    interval_minutes: int

    def __post_init__(self):
        if self.interval_minutes <= 0:
            raise ValueError(
                f"interval_minutes must be positive, got {self.interval_minutes} "
                f"for integration {self.id}"
            )

    @property
    def sort_key(self):
        """Tick evaluation order: tightest cadence first, then id."""
        return (self.interval_minutes, self.id)

    @classmethod
    def from_model(cls, row: MarketplaceIntegration) -> "ScheduledIntegration":
        return cls(
            id=row.id,
            marketplace=Marketplace(row.marketplace),
            interval_minutes=row.interval_minutes,
        )


def load_integrations(engine) -> List[ScheduledIntegration]:
    """Load every active integration from the database."""
    with Session(engine) as s:
        rows = s.exec(
            select(MarketplaceIntegration).where(MarketplaceIntegration.is_active)
        ).all()
        return [ScheduledIntegration.from_model(r) for r in rows]
