"""
OperationContext -- cancellation token threaded through gateway and service calls.

Responsibility:
    Carries a caller-controlled cancel flag and an optional deadline.  Long
    running loops (import rows, retry backoff, job pacing) poll it and stop
    with ``OperationCancelledError``.

Architecture position:
    Kernel > Domain.  Depends only on the clock-free ``time.monotonic`` and
    ``threading.Event``.
"""

from __future__ import annotations

import threading
import time

from etc_kernel.exceptions import OperationCancelledError


class OperationContext:
    """
    Cancellable context with an optional timeout.

    Contract:
        ``cancel()`` may be called from any thread.  ``sleep()`` returns
        early when the context is cancelled.

    Non-goals:
        Does not interrupt blocking I/O already in progress.
    """

    def __init__(self, timeout: float | None = None):
        self._cancelled = threading.Event()
        self._deadline = (
            time.monotonic() + timeout if timeout is not None else None
        )
        self._reason: str | None = None

    @classmethod
    def background(cls) -> OperationContext:
        """A context that is never cancelled unless asked to be."""
        return cls()

    def cancel(self, reason: str = "context cancelled") -> None:
        if self._reason is None:
            self._reason = reason
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            if self._reason is None:
                self._reason = "deadline exceeded"
            return True
        return False

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelledError(self._reason or "context cancelled")

    def sleep(self, seconds: float) -> bool:
        """Wait up to ``seconds``.  Returns False if cancelled while waiting."""
        if self._deadline is not None:
            remaining = self._deadline - time.monotonic()
            if remaining < seconds:
                self._cancelled.wait(max(remaining, 0.0))
                return not self.cancelled
        self._cancelled.wait(seconds)
        return not self.cancelled


def ensure_context(ctx: OperationContext | None) -> OperationContext:
    return ctx if ctx is not None else OperationContext.background()
