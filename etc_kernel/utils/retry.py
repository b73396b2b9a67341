"""
Retry helper with exponential backoff and cancellation.

Responsibility:
    Re-run a callable until it succeeds or the attempt budget is spent.
    The cancellation token is checked before each attempt and before each
    backoff sleep; a cancelled token aborts immediately.

Failure modes:
    - OperationCancelledError: context cancelled or deadline passed.
    - RetryExhaustedError: every attempt raised a retryable exception.
    - Non-retryable exceptions propagate unchanged on first occurrence.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from etc_kernel.domain.context import OperationContext, ensure_context
from etc_kernel.exceptions import OperationCancelledError, RetryExhaustedError
from etc_kernel.logging_config import get_logger

logger = get_logger("utils.retry")

T = TypeVar("T")


def backoff_delay(base_delay: float, attempt: int) -> float:
    """Delay before retry number ``attempt + 1`` (attempt is 0-based)."""
    return base_delay * (2**attempt)


def with_retry(
    operation: Callable[[], T],
    *,
    max_retries: int = 3,
    base_delay: float = 0.1,
    ctx: OperationContext | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    operation_name: str = "operation",
) -> T:
    """
    Call ``operation`` up to ``max_retries`` times.

    Args:
        operation: Zero-argument callable.
        max_retries: Total attempts (at least 1).
        base_delay: Seconds before the first retry; doubled each time.
        ctx: Cancellation token.
        retry_on: Exception types that trigger another attempt.
        operation_name: Label for log events.

    Returns:
        Whatever ``operation`` returns on its first success.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")
    ctx = ensure_context(ctx)

    last_error: BaseException | None = None
    for attempt in range(max_retries):
        ctx.raise_if_cancelled()
        try:
            return operation()
        except OperationCancelledError:
            raise
        except retry_on as exc:
            last_error = exc
            logger.warning(
                "retry_attempt_failed",
                extra={
                    "operation": operation_name,
                    "attempt": attempt + 1,
                    "max_retries": max_retries,
                    "error": str(exc),
                },
            )

        if attempt + 1 < max_retries:
            ctx.raise_if_cancelled()
            if not ctx.sleep(backoff_delay(base_delay, attempt)):
                raise OperationCancelledError(ctx.reason or "context cancelled")

    raise RetryExhaustedError(max_retries, str(last_error))
