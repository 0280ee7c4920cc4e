"""
Tests for the rate-limited request queue.

Time is simulated: the queue gets a FakeClock whose sleep() advances
the clock, so window waits and backoffs are checked without waiting.
"""

import asyncio

import pytest

from fitsync.features.strava.errors import StravaAPIError, StravaRateLimitError
from fitsync.features.strava.queue import RequestQueue


async def settle(rounds: int = 10):
    for _ in range(rounds):
        await asyncio.sleep(0)


def recorder(log: list, value, clock=None):
    async def execute():
        log.append(value if clock is None else (value, clock.now))
        return value
    return execute


@pytest.fixture
def queue(clock):
    return RequestQueue(clock=clock, sleep=clock.sleep)


# =============================================================================
# Ordering
# =============================================================================

class TestOrdering:
    """Priority and FIFO order."""

    async def test_higher_priority_runs_first(self, queue):
        order = []

        results = await asyncio.gather(*(
            queue.add(f"req-{p}", recorder(order, p), priority=p)
            for p in (1, 9, 5)
        ))

        assert order == [9, 5, 1]
        # Each caller still gets its own result
        assert results == [1, 9, 5]

    async def test_fifo_within_same_priority(self, queue):
        order = []

        await asyncio.gather(*(
            queue.add(f"req-{i}", recorder(order, i), priority=5)
            for i in range(5)
        ))

        assert order == [0, 1, 2, 3, 4]

    async def test_min_delay_between_requests(self, queue, clock):
        calls = []

        await asyncio.gather(*(
            queue.add(f"req-{i}", recorder(calls, i, clock)) for i in range(3)
        ))

        times = [t for _, t in calls]
        assert times[0] == 0
        assert times[1] - times[0] == pytest.approx(0.1)
        assert times[2] - times[1] == pytest.approx(0.1)

    async def test_worker_stops_when_drained(self, queue):
        await queue.add("only", recorder([], 1))
        await settle()

        assert not queue.processing
        assert queue.queue_length == 0


# =============================================================================
# Rate window
# =============================================================================

class TestRateWindow:
    """Sliding 15-minute request budget."""

    async def test_request_beyond_budget_waits_for_window(self, queue, clock):
        calls = []

        await asyncio.gather(*(
            queue.add(f"req-{i}", recorder(calls, i, clock)) for i in range(551)
        ))

        assert len(calls) == 551
        first_start = calls[0][1]
        last_start = calls[550][1]
        assert last_start - first_start == pytest.approx(900)
        # The 550 budgeted requests only paid the spacing delay
        assert calls[549][1] == pytest.approx(549 * 0.1)
        assert max(clock.sleeps) == pytest.approx(900 - 549 * 0.1)

    async def test_window_is_rolling(self, clock):
        queue = RequestQueue(
            max_requests_per_window=2,
            window_seconds=10,
            min_delay=1,
            clock=clock,
            sleep=clock.sleep,
        )
        calls = []

        await asyncio.gather(*(
            queue.add(f"req-{i}", recorder(calls, i, clock)) for i in range(4)
        ))

        # The third start waits for the first to leave the window
        assert [t for _, t in calls] == pytest.approx([0, 1, 10, 11])

    async def test_request_count_tracks_window(self, queue, clock):
        for i in range(3):
            await queue.add(f"req-{i}", recorder([], i))
        assert queue.request_count == 3

        clock.advance(901)
        assert queue.request_count == 0

    async def test_failed_attempts_do_not_count(self, clock):
        queue = RequestQueue(max_retries=0, clock=clock, sleep=clock.sleep)

        async def broken():
            raise StravaAPIError("boom", status=500)

        with pytest.raises(StravaAPIError):
            await queue.add("broken", broken)

        assert queue.request_count == 0


# =============================================================================
# Retries
# =============================================================================

class TestRetries:
    """Backoff, Retry-After and exhaustion."""

    async def test_rate_limited_request_honors_retry_after(self, queue, clock):
        attempts = 0

        async def flaky():
            nonlocal attempts
            attempts += 1
            if attempts <= 2:
                raise StravaRateLimitError(retry_after=2)
            return "ok"

        result = await queue.add("/athlete", flaky, priority=10)

        assert result == "ok"
        assert attempts == 3
        assert clock.sleeps[0] >= 2
        assert clock.sleeps == [2, 2]

    async def test_backoff_doubles_for_generic_errors(self, queue, clock):
        attempts = 0

        async def always_fails():
            nonlocal attempts
            attempts += 1
            raise StravaAPIError(f"boom {attempts}", status=500)

        with pytest.raises(StravaAPIError) as exc_info:
            await queue.add("/athlete", always_fails)

        # One initial attempt plus three retries
        assert attempts == 4
        assert exc_info.value.message == "boom 4"
        assert exc_info.value.status == 500
        assert clock.sleeps == [1, 2, 4]

    async def test_backoff_wins_over_short_retry_after(self, queue, clock):
        attempts = 0

        async def flaky():
            nonlocal attempts
            attempts += 1
            if attempts <= 3:
                raise StravaRateLimitError(retry_after=1.5)
            return "ok"

        assert await queue.add("/athlete", flaky) == "ok"
        assert clock.sleeps == [1.5, 2, 4]

    async def test_exhausted_rate_limit_error_keeps_details(self, queue):
        async def limited():
            raise StravaRateLimitError(limit="600,30000", usage="601,1200", retry_after=3)

        with pytest.raises(StravaRateLimitError) as exc_info:
            await queue.add("/athlete", limited)

        assert exc_info.value.usage == "601,1200"
        assert exc_info.value.retry_after == 3

    async def test_retry_goes_ahead_of_later_arrivals(self, queue):
        order = []
        pending = []
        attempts = 0

        async def flaky():
            nonlocal attempts
            attempts += 1
            order.append(f"flaky-{attempts}")
            if attempts == 1:
                pending.append(asyncio.ensure_future(
                    queue.add("other", recorder(order, "other"), priority=5)
                ))
                await asyncio.sleep(0)
                raise StravaAPIError("transient", status=503)
            return "ok"

        assert await queue.add("flaky", flaky, priority=5) == "ok"
        assert await pending[0] == "other"
        assert order == ["flaky-1", "flaky-2", "other"]


# =============================================================================
# Cancellation
# =============================================================================

class TestCancellation:
    """Callers that give up, and clearing the queue."""

    async def test_cancelled_caller_is_skipped(self, queue):
        gate = asyncio.Event()
        calls = []

        async def slow():
            calls.append("slow")
            await gate.wait()
            return "slow"

        slow_task = asyncio.create_task(queue.add("slow", slow, priority=5))
        fast_task = asyncio.create_task(queue.add("fast", recorder(calls, "fast"), priority=1))
        await settle()

        fast_task.cancel()
        gate.set()

        assert await slow_task == "slow"
        with pytest.raises(asyncio.CancelledError):
            await fast_task
        await settle()

        assert calls == ["slow"]

    async def test_clear_cancels_pending_requests(self, queue):
        gate = asyncio.Event()

        async def slow():
            await gate.wait()
            return "slow"

        slow_task = asyncio.create_task(queue.add("slow", slow, priority=5))
        waiting = [
            asyncio.create_task(queue.add(f"req-{i}", recorder([], i))) for i in range(3)
        ]
        await settle()
        assert queue.queue_length == 3

        queue.clear()
        gate.set()

        assert await slow_task == "slow"
        for task in waiting:
            with pytest.raises(asyncio.CancelledError):
                await task
        assert queue.queue_length == 0

    async def test_clear_cancels_request_waiting_for_slot(self, clock):
        release = asyncio.Event()

        async def held_sleep(seconds):
            clock.sleeps.append(seconds)
            await release.wait()

        queue = RequestQueue(clock=clock, sleep=held_sleep)
        calls = []
        first = asyncio.create_task(queue.add("first", recorder(calls, "first")))
        second = asyncio.create_task(queue.add("second", recorder(calls, "second")))
        await settle()

        assert await first == "first"
        # The worker has popped "second" and is pacing it
        assert queue.queue_length == 0
        assert clock.sleeps == [queue.min_delay]

        queue.clear()
        release.set()

        with pytest.raises(asyncio.CancelledError):
            await second
        await settle()
        assert calls == ["first"]
        assert not queue.processing

    async def test_close_cancels_in_flight_caller(self, queue):
        gate = asyncio.Event()

        async def never_finishes():
            await gate.wait()

        task = asyncio.create_task(queue.add("stuck", never_finishes))
        await settle()
        assert queue.processing

        await queue.close()

        assert not queue.processing
        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_close_cancels_request_backing_off(self, queue):
        async def always_fails():
            raise StravaAPIError("Server Error", status=500)

        task = asyncio.create_task(queue.add("flaky", always_fails))
        await settle(1)

        await queue.close()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert not queue.processing
