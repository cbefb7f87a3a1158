"""Periodic service loop around the batch orchestrator."""

from __future__ import annotations

import gc
import logging
import os
import threading
from typing import Callable, Optional

from .cancellation import CancellationToken
from .errors import OperationCancelled, RunTimeoutError
from .models import RunSummary
from .reporting import RunReporter
from .utils import DEFAULT_INTERVAL_HOURS, DEFAULT_RUN_TIMEOUT_HOURS

log = logging.getLogger(__name__)

ERROR_BACKOFF_S = 5 * 60
RUN_NICENESS = 10

RunFn = Callable[[CancellationToken], RunSummary]


class ServiceLoop:
    """Calls ``run_fn`` every ``interval_s`` until ``stop_event`` is set.

    At most one run is active at a time: a tick that finds the gate taken
    is skipped, not queued. Every run gets its own ``run_timeout_s``
    deadline on top of the stop event.
    """

    def __init__(
        self,
        run_fn: RunFn,
        *,
        stop_event: Optional[threading.Event] = None,
        interval_s: float = DEFAULT_INTERVAL_HOURS * 3600,
        run_timeout_s: Optional[float] = DEFAULT_RUN_TIMEOUT_HOURS * 3600,
        error_backoff_s: float = ERROR_BACKOFF_S,
        reporter: Optional[RunReporter] = None,
        run_niceness: int = RUN_NICENESS,
    ) -> None:
        self.run_fn = run_fn
        self.stop_event = stop_event or threading.Event()
        self.interval_s = interval_s
        self.run_timeout_s = run_timeout_s
        self.error_backoff_s = error_backoff_s
        self.reporter = reporter
        self.run_niceness = run_niceness
        self._gate = threading.Lock()
        self._priority_lowered = False

    def _lower_priority(self) -> None:
        """Run conversions below normal priority, once per loop.

        Unprivileged processes cannot raise their priority again, so the
        thread stays at the lowered level between runs.
        """
        nice = getattr(os, "nice", None)
        if self._priority_lowered or nice is None or self.run_niceness <= 0:
            return
        try:
            nice(self.run_niceness)
        except OSError as exc:
            log.warning("Could not lower process priority: %s", exc)
        else:
            log.debug("Lowered scheduling priority by %s", self.run_niceness)
        self._priority_lowered = True

    def tick(self) -> Optional[RunSummary]:
        """Run once unless a previous run still holds the gate."""
        if not self._gate.acquire(blocking=False):
            log.warning("Skipping PDF processing as previous run is still in progress")
            return None
        try:
            self._lower_priority()
            log.info("Starting PDF processing")
            token = CancellationToken(
                self.stop_event, self.run_timeout_s, timeout_error=RunTimeoutError
            )
            try:
                summary = self.run_fn(token)
            except OperationCancelled:
                log.warning("PDF processing was canceled due to service shutdown")
                return None
            except RunTimeoutError:
                log.warning("PDF processing was canceled due to timeout")
                return None
            log.info("PDF processing completed successfully")
            return summary
        finally:
            gc.collect()
            self._gate.release()

    def serve_forever(self) -> None:
        log.info("PDF to Image Service started")
        while not self.stop_event.is_set():
            delay = self.interval_s
            try:
                self.tick()
            except Exception as exc:
                log.exception("Error occurred during PDF processing")
                if self.reporter is not None:
                    self.reporter.notify_fatal(exc, "Run Error")
                delay = self.error_backoff_s
            self.stop_event.wait(delay)
        log.info("PDF to Image Service is stopping")

    def stop(self) -> None:
        self.stop_event.set()
