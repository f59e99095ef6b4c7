"""Tests for SyncStatusStore snapshots."""
import dataclasses
from datetime import timedelta

import pytest

from marketos.models.integration import Marketplace
from marketos.sync.integrations import ScheduledIntegration
from marketos.sync.registry import SyncOutcome, SyncRunRegistry
from marketos.sync.status import SyncStatusStore

WB = ScheduledIntegration(id="wb", marketplace=Marketplace.WB, interval_minutes=5)
OZON = ScheduledIntegration(id="ozon", marketplace=Marketplace.OZON, interval_minutes=15)


@pytest.fixture(name="registry")
def registry_fixture(clock) -> SyncRunRegistry:
    return SyncRunRegistry(clock=clock)


@pytest.fixture(name="store")
def store_fixture(registry) -> SyncStatusStore:
    return SyncStatusStore(registry, lambda: [OZON, WB])


def _run(registry, clock, integration_id, outcome, minutes=1, **kwargs):
    ticket = registry.try_admit(integration_id)
    clock.advance(minutes=minutes)
    return registry.record_finish(ticket, outcome, **kwargs)


class TestSnapshot:
    def test_never_synced(self, store, clock):
        status = store.snapshot()
        assert status.last_sync is None
        assert status.last_error is None
        assert status.next_sync is None
        assert status.running_count == 0
        assert status.taken_at == clock.now

    def test_integrations_in_evaluation_order(self, store):
        ids = [i.integration_id for i in store.snapshot().integrations]
        assert ids == ["wb", "ozon"]

    def test_interval_is_smallest_configured(self, store):
        assert store.snapshot().interval_minutes == 5

    def test_last_and_next_sync_after_success(self, store, registry, clock):
        run = _run(registry, clock, "wb", SyncOutcome.SUCCESS, items_synced=7)
        status = store.snapshot()
        assert status.last_sync == run.finished_at
        assert status.next_sync == run.finished_at + timedelta(minutes=5)

        wb = status.for_integration("wb")
        assert wb.last_outcome is SyncOutcome.SUCCESS
        assert wb.items_synced == 7
        assert status.for_integration("ozon").next_sync is None

    def test_next_sync_is_earliest_across_integrations(self, store, registry, clock):
        ozon_run = _run(registry, clock, "ozon", SyncOutcome.SUCCESS)
        _run(registry, clock, "wb", SyncOutcome.SUCCESS, minutes=14)
        status = store.snapshot()
        # ozon due at +15 from its finish, wb at +5 from a later finish
        assert status.next_sync == ozon_run.finished_at + timedelta(minutes=15)

    def test_failure_sets_last_error_not_last_sync(self, store, registry, clock):
        run = _run(registry, clock, "wb", SyncOutcome.FAILURE, error_detail="HTTP 500")
        status = store.snapshot()
        assert status.last_error == "HTTP 500"
        assert status.last_sync is None
        # retry follows the regular cadence
        assert status.next_sync == run.finished_at + timedelta(minutes=5)

    def test_success_clears_error(self, store, registry, clock):
        _run(registry, clock, "wb", SyncOutcome.FAILURE, error_detail="HTTP 500")
        _run(registry, clock, "wb", SyncOutcome.SUCCESS)
        status = store.snapshot()
        assert status.last_error is None
        assert status.for_integration("wb").last_error is None

    def test_last_error_is_newest_failure(self, store, registry, clock):
        _run(registry, clock, "wb", SyncOutcome.FAILURE, error_detail="older")
        _run(registry, clock, "ozon", SyncOutcome.FAILURE, error_detail="newer")
        assert store.snapshot().last_error == "newer"

    def test_running_count(self, store, registry):
        registry.try_admit("wb")
        status = store.snapshot()
        assert status.running_count == 1
        assert status.for_integration("wb").running
        assert not status.for_integration("ozon").running

    def test_snapshot_is_immutable(self, store):
        status = store.snapshot()
        with pytest.raises(dataclasses.FrozenInstanceError):
            status.running_count = 5

    def test_snapshot_not_changed_by_later_runs(self, store, registry, clock):
        before = store.snapshot()
        _run(registry, clock, "wb", SyncOutcome.SUCCESS)
        assert before.last_sync is None
        assert store.snapshot().last_sync is not None

    def test_unknown_integration_lookup(self, store):
        assert store.snapshot().for_integration("missing") is None


class TestOnUpdate:
    def test_callback_receives_runs(self, store, registry, clock):
        seen = []
        store.on_update(seen.append)
        _run(registry, clock, "wb", SyncOutcome.SUCCESS)
        assert [r.integration_id for r in seen] == ["wb"]

    def test_snapshot_inside_callback_sees_finish(self, store, registry, clock):
        observed = []
        store.on_update(lambda run: observed.append(store.snapshot().last_sync))
        run = _run(registry, clock, "wb", SyncOutcome.SUCCESS)
        assert observed == [run.finished_at]

    def test_close_drops_subscribers(self, store, registry, clock):
        seen = []
        store.on_update(seen.append)
        store.close()
        _run(registry, clock, "wb", SyncOutcome.SUCCESS)
        assert seen == []
        assert store.snapshot().last_sync is not None
