"""Cooperative cancellation: a stop signal plus a chain of deadlines.

A run owns a root token built from the process stop event and the
run-level timeout. Each file gets a child token with its own deadline.
``check()`` raises the most specific abort reason, and every wait in the
pipeline goes through ``sleep()`` or ``pause()`` so a stop request is
noticed without waiting out a full delay.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from .errors import FileTimeoutError, OperationCancelled, RunTimeoutError


class CancellationToken:
    def __init__(
        self,
        stop_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
        *,
        timeout_error: type[Exception] = RunTimeoutError,
        parent: Optional["CancellationToken"] = None,
        clock=time.monotonic,
    ) -> None:
        if parent is not None:
            stop_event = parent.stop_event
            clock = parent._clock
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self._clock = clock
        self._parent = parent
        self._timeout = timeout
        self._timeout_error = timeout_error
        self.deadline = clock() + timeout if timeout is not None else None

    @classmethod
    def none(cls) -> "CancellationToken":
        """A token that never fires unless cancelled explicitly."""
        return cls()

    def derive(
        self,
        timeout: Optional[float],
        timeout_error: type[Exception] = FileTimeoutError,
    ) -> "CancellationToken":
        return CancellationToken(
            timeout=timeout, timeout_error=timeout_error, parent=self
        )

    def cancel(self) -> None:
        self.stop_event.set()

    @property
    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    def _expired(self) -> bool:
        return self.deadline is not None and self._clock() >= self.deadline

    @property
    def should_stop(self) -> bool:
        token: Optional[CancellationToken] = self
        if self.cancelled:
            return True
        while token is not None:
            if token._expired():
                return True
            token = token._parent
        return False

    def remaining(self) -> Optional[float]:
        """Seconds until the nearest deadline in the chain, or None."""
        remaining: Optional[float] = None
        token: Optional[CancellationToken] = self
        while token is not None:
            if token.deadline is not None:
                left = max(0.0, token.deadline - self._clock())
                remaining = left if remaining is None else min(remaining, left)
            token = token._parent
        return remaining

    def check(self) -> None:
        """Raise if the stop event fired or any deadline in the chain passed.

        Outer reasons win: a stop request beats a run timeout, which beats
        the per-file timeout.
        """
        if self.cancelled:
            raise OperationCancelled("Operation was cancelled")
        if self._parent is not None:
            self._parent.check()
        if self._expired():
            raise self._timeout_error(f"Operation timed out after {self._timeout:g}s")

    def sleep(self, seconds: float) -> None:
        """Wait up to ``seconds``; raise as soon as the token fires."""
        self.check()
        if seconds > 0:
            remaining = self.remaining()
            wait_for = seconds if remaining is None else min(seconds, remaining)
            self.stop_event.wait(wait_for)
        self.check()

    def pause(self, seconds: float) -> bool:
        """Wait up to ``seconds`` without raising; False when interrupted."""
        if self.should_stop:
            return False
        if seconds > 0:
            remaining = self.remaining()
            wait_for = seconds if remaining is None else min(seconds, remaining)
            self.stop_event.wait(wait_for)
        return not self.should_stop
