# Overview: Orchestrates one sync cycle (push then pull) with single-flight execution and cancellation.

"""
Sync Coordinator

STATE MACHINE:
IDLE -> RUNNING -> {SUCCEEDED, PARTIALLY_FAILED, FAILED} -> IDLE

SINGLE-FLIGHT:
Only one cycle runs per process. A trigger that arrives while a cycle is
running is folded into one follow-up cycle, run by the caller that owns the
current cycle as soon as it finishes. The late caller returns immediately
with coalesced=True and no report.

OUTCOMES:
- SUCCEEDED: every type pushed and pulled without failures
- PARTIALLY_FAILED: some type failed (transport or rejected records), or the
  cycle was cancelled; other types still completed
- FAILED: AuthError or LocalStoreError aborted the cycle

CANCELLATION:
cancel() is observed between entity types. Batches already applied stay
applied; the cycle reports PARTIALLY_FAILED with cancelled=True.

PERSISTENCE:
The sync_state row records RUNNING during a cycle and the outcome after it.
A RUNNING row found at startup is reset to IDLE.
"""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Optional

from flask import current_app, has_app_context

from ..models.sync import STATE_IDLE, STATE_RUNNING
from . import local_store
from .pull_service import pull_changes
from .push_service import push_pending
from .sync_errors import FATAL_ERRORS
from .sync_types import CycleOutcome, PhaseReport
from possync.time_utils import now_ms, to_utc_z


logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    outcome: CycleOutcome
    push: PhaseReport = field(default_factory=PhaseReport)
    pull: PhaseReport = field(default_factory=PhaseReport)
    started_at: int = 0
    finished_at: int = 0
    cancelled: bool = False
    error: Optional[str] = None

    @property
    def warnings(self) -> list[str]:
        return self.push.warnings + self.pull.warnings

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "push": self.push.to_dict(),
            "pull": self.pull.to_dict(),
            "warnings": self.warnings,
            "cancelled": self.cancelled,
            "error": self.error,
            "started_at": to_utc_z(self.started_at),
            "finished_at": to_utc_z(self.finished_at),
        }


@dataclass
class RunResult:
    """
    What a trigger gets back.

    report is None when the trigger was folded into a cycle already running.
    coalesced is True when this trigger was folded, or when the caller also
    ran a follow-up cycle requested by another trigger.
    """

    report: Optional[CycleReport]
    coalesced: bool = False
    cycles: int = 0

    def to_dict(self) -> dict:
        return {
            "report": self.report.to_dict() if self.report else None,
            "coalesced": self.coalesced,
            "cycles": self.cycles,
        }


class SyncCoordinator:
    """
    Runs sync cycles for a Flask app.

    Args:
        app: Flask application (each cycle runs in its own app context)
        gateway: RemoteGateway or compatible fake
    """

    def __init__(self, app, gateway):
        self.app = app
        self.gateway = gateway
        self._lock = threading.Lock()
        self._running = False
        self._follow_up = False
        self._cancel = threading.Event()
        self.last_report: Optional[CycleReport] = None

        with self._app_context():
            with local_store.transaction():
                if local_store.recover_interrupted_cycle():
                    logger.warning("Found sync state RUNNING from a previous process; reset to IDLE")

    def _app_context(self):
        """Reuse the caller's context for this app (same session), else push one."""
        if has_app_context() and current_app._get_current_object() is self.app:
            return nullcontext()
        return self.app.app_context()

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def cancel(self) -> None:
        """Stop the current cycle at the next entity-type boundary."""
        self._cancel.set()
        with self._lock:
            self._follow_up = False

    def run_cycle(self) -> RunResult:
        """
        Trigger a sync cycle.

        Returns:
            RunResult with the report of the last cycle this call executed
        """
        with self._lock:
            if self._running:
                self._follow_up = True
                logger.info("Sync already running; follow-up cycle requested")
                return RunResult(report=None, coalesced=True, cycles=0)
            self._running = True
            self._cancel.clear()

        cycles = 0
        coalesced = False
        report = None
        try:
            while True:
                report = self._run_once()
                cycles += 1
                with self._lock:
                    if not self._follow_up:
                        self._running = False
                        break
                    self._follow_up = False
                    coalesced = True
                self._cancel.clear()
        except BaseException:
            with self._lock:
                self._running = False
                self._follow_up = False
            raise

        return RunResult(report=report, coalesced=coalesced, cycles=cycles)

    def _run_once(self) -> CycleReport:
        with self._app_context():
            config = self.app.config
            report = CycleReport(outcome=CycleOutcome.SUCCEEDED, started_at=now_ms())
            try:
                self._mark_started(report.started_at)
                report.push = push_pending(
                    self.gateway,
                    batch_size=config.get("SYNC_PUSH_BATCH_SIZE", 50),
                    max_attempts=config.get("SYNC_MAX_ATTEMPTS", 3),
                    should_cancel=self._cancel.is_set,
                )
                if not report.push.cancelled:
                    report.pull = pull_changes(
                        self.gateway,
                        page_size=config.get("SYNC_PULL_PAGE_SIZE", 200),
                        should_cancel=self._cancel.is_set,
                    )
            except FATAL_ERRORS as exc:
                logger.exception("Sync cycle failed")
                report.outcome = CycleOutcome.FAILED
                report.error = str(exc)
            else:
                report.cancelled = report.push.cancelled or report.pull.cancelled
                if report.cancelled or report.push.has_failures or report.pull.has_failures:
                    report.outcome = CycleOutcome.PARTIALLY_FAILED

            report.finished_at = now_ms()
            self._mark_finished(report)
            self.last_report = report

            logger.info(
                "Sync cycle %s: %d warnings%s",
                report.outcome.value,
                len(report.warnings),
                " (cancelled)" if report.cancelled else "",
            )
            return report

    def _mark_started(self, started_at: int) -> None:
        with local_store.transaction():
            state = local_store.get_sync_state()
            state.status = STATE_RUNNING
            state.last_started_at = started_at

    def _mark_finished(self, report: CycleReport) -> None:
        with local_store.transaction():
            state = local_store.get_sync_state()
            state.status = STATE_IDLE
            state.last_outcome = report.outcome.value
            state.last_finished_at = report.finished_at
            state.last_error = report.error
