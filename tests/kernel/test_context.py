"""Tests for OperationContext, paging helpers and the clock."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from etc_kernel.domain.clock import DeterministicClock, SystemClock
from etc_kernel.domain.context import OperationContext, ensure_context
from etc_kernel.domain.paging import Page, check_sort, normalize_paging
from etc_kernel.exceptions import OperationCancelledError, ValidationError


class TestOperationContext:

    def test_background_not_cancelled(self):
        ctx = OperationContext.background()
        assert not ctx.cancelled
        ctx.raise_if_cancelled()

    def test_cancel_sets_reason(self):
        ctx = OperationContext()
        ctx.cancel("user abort")
        assert ctx.cancelled
        assert ctx.reason == "user abort"
        with pytest.raises(OperationCancelledError, match="user abort"):
            ctx.raise_if_cancelled()

    def test_first_reason_wins(self):
        ctx = OperationContext()
        ctx.cancel("first")
        ctx.cancel("second")
        assert ctx.reason == "first"

    def test_deadline(self):
        ctx = OperationContext(timeout=0)
        assert ctx.cancelled
        assert ctx.reason == "deadline exceeded"

    def test_sleep_returns_true_when_not_cancelled(self):
        assert OperationContext().sleep(0) is True

    def test_sleep_wakes_on_cancel(self):
        ctx = OperationContext()
        timer = threading.Timer(0.05, ctx.cancel, args=("wake",))
        timer.start()
        try:
            assert ctx.sleep(30) is False
        finally:
            timer.cancel()

    def test_ensure_context(self):
        ctx = OperationContext()
        assert ensure_context(ctx) is ctx
        assert isinstance(ensure_context(None), OperationContext)


class TestPaging:

    def test_defaults_applied(self):
        assert normalize_paging(1, None, default_size=50) == (1, 50)
        assert normalize_paging(2, 0, default_size=20) == (2, 20)

    def test_page_below_one(self):
        with pytest.raises(ValidationError):
            normalize_paging(0, 10)

    def test_page_size_above_max(self):
        with pytest.raises(ValidationError):
            normalize_paging(1, 1001, max_size=1000)

    def test_total_pages(self):
        assert Page((), 0, 1, 50).total_pages == 0
        assert Page((), 101, 1, 50).total_pages == 3
        assert Page((), 100, 3, 50).offset == 100

    def test_check_sort(self):
        allowed = frozenset({"created_at"})
        check_sort("created_at", "asc", allowed)
        with pytest.raises(ValidationError):
            check_sort("file_size", "asc", allowed)
        with pytest.raises(ValidationError):
            check_sort("created_at", "up", allowed)


class TestClock:

    def test_deterministic_clock_is_stable(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()
        assert clock.now() == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_advance_and_tick(self):
        clock = DeterministicClock()
        start = clock.now()
        clock.advance(60)
        assert clock.now() == start + timedelta(seconds=60)
        assert clock.tick() == start + timedelta(seconds=61)

    def test_set_time_resets_offset(self):
        clock = DeterministicClock()
        clock.advance(10)
        target = datetime(2025, 1, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target
        assert clock.today().isoformat() == "2025-01-01"

    def test_system_clock_is_utc(self):
        assert SystemClock().now().tzinfo is not None
