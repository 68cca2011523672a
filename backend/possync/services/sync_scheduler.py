# Overview: Background trigger for sync cycles; periodic timer plus on-demand wake-ups.

"""
Sync Scheduler

TRIGGERS:
- Periodic: every SYNC_INTERVAL_SECONDS (15 minutes by default)
- Immediate: request_immediate() after a local write, a reconnect, or a
  manual "sync now"

BACKOFF:
After a cycle that did not succeed, the next attempt comes sooner than the
regular interval and doubles each time (backoff_base, 2x, 4x, ...), capped
at the interval. A successful cycle restores the regular interval.

All triggers funnel into SyncCoordinator.run_cycle(), which serializes them.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from .sync_types import CycleOutcome


logger = logging.getLogger(__name__)


class SyncScheduler:
    def __init__(self, coordinator, *, interval_seconds: float = 900, backoff_base: float = 30):
        self.coordinator = coordinator
        self.interval_seconds = interval_seconds
        self.backoff_base = backoff_base
        self._wake = threading.Event()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._consecutive_failures = 0

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, *, run_immediately: bool = True) -> None:
        if self.is_alive:
            return
        self._stop.clear()
        if run_immediately:
            self._wake.set()
        self._thread = threading.Thread(target=self._loop, name="possync-scheduler", daemon=True)
        self._thread.start()
        logger.info("Sync scheduler started (interval %ss)", self.interval_seconds)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        self._wake.set()
        self.coordinator.cancel()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None

    def request_immediate(self) -> None:
        """Run a cycle as soon as possible (coalesced if one is running)."""
        self._wake.set()

    def next_delay(self, outcome: Optional[CycleOutcome]) -> float:
        """Seconds until the next periodic trigger, given the last outcome."""
        if outcome is None or outcome == CycleOutcome.SUCCEEDED:
            self._consecutive_failures = 0
            return self.interval_seconds
        self._consecutive_failures += 1
        delay = self.backoff_base * (2 ** (self._consecutive_failures - 1))
        return min(delay, self.interval_seconds)

    def _loop(self) -> None:
        delay = self.interval_seconds
        while not self._stop.is_set():
            self._wake.wait(timeout=delay)
            self._wake.clear()
            if self._stop.is_set():
                break

            outcome = None
            try:
                result = self.coordinator.run_cycle()
                if result.report is not None:
                    outcome = result.report.outcome
            except Exception:
                logger.exception("Scheduled sync cycle raised")
                outcome = CycleOutcome.FAILED
            delay = self.next_delay(outcome)
