"""Tests for etc_kernel.utils.retry."""

import pytest

from etc_kernel.domain.context import OperationContext
from etc_kernel.exceptions import OperationCancelledError, RetryExhaustedError
from etc_kernel.utils.retry import backoff_delay, with_retry


class Flaky:
    """Callable that fails ``failures`` times before returning ``value``."""

    def __init__(self, failures: int, exc: type[Exception] = ConnectionError, value="ok"):
        self.failures = failures
        self.exc = exc
        self.value = value
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"failure {self.calls}")
        return self.value


class TestBackoffDelay:

    def test_doubles_each_attempt(self):
        assert [backoff_delay(0.5, n) for n in range(4)] == [0.5, 1.0, 2.0, 4.0]


class TestWithRetry:

    def test_first_success(self):
        op = Flaky(0)
        assert with_retry(op, base_delay=0) == "ok"
        assert op.calls == 1

    def test_succeeds_after_transient_failures(self):
        op = Flaky(2)
        assert with_retry(op, max_retries=3, base_delay=0) == "ok"
        assert op.calls == 3

    def test_exhausted(self):
        op = Flaky(5)
        with pytest.raises(RetryExhaustedError) as exc_info:
            with_retry(op, max_retries=3, base_delay=0)
        assert op.calls == 3
        assert exc_info.value.attempts == 3
        assert "failure 3" in exc_info.value.last_error

    def test_non_retryable_propagates_immediately(self):
        op = Flaky(1, exc=KeyError)
        with pytest.raises(KeyError):
            with_retry(op, max_retries=3, base_delay=0, retry_on=(ConnectionError,))
        assert op.calls == 1

    def test_cancelled_before_first_attempt(self):
        ctx = OperationContext()
        ctx.cancel("shutdown")
        op = Flaky(0)
        with pytest.raises(OperationCancelledError):
            with_retry(op, ctx=ctx)
        assert op.calls == 0

    def test_cancelled_between_attempts(self):
        ctx = OperationContext()

        def op():
            ctx.cancel("stop after first failure")
            raise ConnectionError("down")

        with pytest.raises(OperationCancelledError):
            with_retry(op, max_retries=5, base_delay=10, ctx=ctx)

    def test_cancellation_inside_operation_not_retried(self):
        calls = []

        def op():
            calls.append(1)
            raise OperationCancelledError("inner")

        with pytest.raises(OperationCancelledError):
            with_retry(op, max_retries=3, base_delay=0)
        assert len(calls) == 1

    def test_max_retries_must_be_positive(self):
        with pytest.raises(ValueError):
            with_retry(lambda: None, max_retries=0)

    def test_attempt_failures_logged(self, captured_logs):
        with_retry(Flaky(1), max_retries=2, base_delay=0, operation_name="download")

        failures = [r for r in captured_logs() if r["message"] == "retry_attempt_failed"]
        assert len(failures) == 1
        assert failures[0]["operation"] == "download"
        assert failures[0]["attempt"] == 1
