"""Tests for the background trigger."""

import threading

from possync.services.sync_coordinator import RunResult
from possync.services.sync_scheduler import SyncScheduler
from possync.services.sync_types import CycleOutcome


class StubCoordinator:
    def __init__(self):
        self.ran = threading.Event()
        self.runs = 0
        self.cancelled = False

    def run_cycle(self):
        self.runs += 1
        self.ran.set()
        return RunResult(report=None)

    def cancel(self):
        self.cancelled = True


class TestBackoff:
    def test_success_uses_interval(self):
        scheduler = SyncScheduler(StubCoordinator(), interval_seconds=900, backoff_base=30)
        assert scheduler.next_delay(CycleOutcome.SUCCEEDED) == 900

    def test_failures_back_off_exponentially_up_to_interval(self):
        scheduler = SyncScheduler(StubCoordinator(), interval_seconds=200, backoff_base=30)
        delays = [scheduler.next_delay(CycleOutcome.PARTIALLY_FAILED) for _ in range(5)]
        assert delays == [30, 60, 120, 200, 200]

    def test_success_resets_backoff(self):
        scheduler = SyncScheduler(StubCoordinator(), interval_seconds=900, backoff_base=30)
        scheduler.next_delay(CycleOutcome.FAILED)
        scheduler.next_delay(CycleOutcome.FAILED)
        scheduler.next_delay(CycleOutcome.SUCCEEDED)
        assert scheduler.next_delay(CycleOutcome.FAILED) == 30


class TestThread:
    def test_runs_on_start_and_on_request(self):
        coordinator = StubCoordinator()
        scheduler = SyncScheduler(coordinator, interval_seconds=3600)
        scheduler.start()
        try:
            assert coordinator.ran.wait(timeout=5)
            coordinator.ran.clear()
            scheduler.request_immediate()
            assert coordinator.ran.wait(timeout=5)
        finally:
            scheduler.stop(timeout=5)

        assert coordinator.runs >= 2
        assert coordinator.cancelled
        assert not scheduler.is_alive
