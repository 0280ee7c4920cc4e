"""
Rate-limited request queue for Strava API calls.

All upstream calls go through one RequestQueue. A single worker task
drains it, so at most one request is in flight and the rate-window
bookkeeping needs no locks.

Ordering:
- Higher priority first, FIFO within the same priority
- A request being retried goes ahead of everything else

Limits (defaults):
- 550 completed requests in any rolling 15 minutes (Strava allows 600)
- 100 ms between consecutive requests
- 3 retries with exponential backoff (1s, 2s, 4s), honoring Retry-After
"""

import asyncio
import heapq
import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .errors import StravaRateLimitError

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class QueuedRequest:
    id: str
    execute: Callable[[], Awaitable[Any]]
    priority: int
    future: asyncio.Future
    retries: int = 0


class RequestQueue:
    """
    Priority queue with rate limiting and retries.

    Usage:
        queue = RequestQueue()
        athlete = await queue.add("/athlete", fetch_athlete, priority=10)
    """

    def __init__(
        self,
        max_requests_per_window: int = 550,
        window_seconds: float = 15 * 60,
        min_delay: float = 0.1,
        max_retries: int = 3,
        base_backoff: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.max_requests_per_window = max_requests_per_window
        self.window_seconds = window_seconds
        self.min_delay = min_delay
        self.max_retries = max_retries
        self.base_backoff = base_backoff
        self._clock = clock
        self._sleep = sleep

        self._heap: list[tuple[int, int, QueuedRequest]] = []
        self._retry_ahead: deque[QueuedRequest] = deque()
        self._sequence = itertools.count()
        # Completion times inside the current rolling window, oldest first
        self._completions: deque[float] = deque()
        self._worker: Optional[asyncio.Task] = None
        # Request the worker holds between popping it and settling it
        self._current: Optional[QueuedRequest] = None
        self._in_flight = False

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def add(
        self,
        request_id: str,
        execute: Callable[[], Awaitable[Any]],
        priority: int = 0
    ) -> Any:
        """
        Queue a request and wait for its result.

        Args:
            request_id: Label for logging (usually the endpoint)
            execute: Zero-argument coroutine function doing the call
            priority: Higher runs first

        Returns:
            Whatever execute() returns on its first successful attempt

        Raises:
            The last error once retries are exhausted
        """
        request = QueuedRequest(
            id=request_id,
            execute=execute,
            priority=priority,
            future=asyncio.get_running_loop().create_future(),
        )
        heapq.heappush(self._heap, (-priority, next(self._sequence), request))
        self._ensure_worker()
        return await request.future

    @property
    def processing(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def queue_length(self) -> int:
        return len(self._heap) + len(self._retry_ahead)

    @property
    def request_count(self) -> int:
        """Requests completed within the current rolling window."""
        self._prune(self._clock())
        return len(self._completions)

    def clear(self) -> None:
        """
        Drop every queued request, cancelling its caller.

        A request the worker is pacing or backing off is dropped too; one
        whose call is already on the wire is left to finish.
        """
        pending = [entry[2] for entry in self._heap] + list(self._retry_ahead)
        if self._current is not None and not self._in_flight:
            pending.append(self._current)
        self._heap.clear()
        self._retry_ahead.clear()
        for request in pending:
            if not request.future.done():
                request.future.cancel()
        if pending:
            logger.info(f"Request queue cleared ({len(pending)} pending requests dropped)")

    async def close(self) -> None:
        """Cancel pending and in-flight requests and stop the worker."""
        self.clear()
        current = self._current
        if current is not None and not current.future.done():
            current.future.cancel()
        if self.processing:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None

    # -------------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------------

    def _ensure_worker(self) -> None:
        if not self.processing:
            self._worker = asyncio.create_task(self._process_queue())

    def _next_request(self) -> Optional[QueuedRequest]:
        if self._retry_ahead:
            return self._retry_ahead.popleft()
        if self._heap:
            return heapq.heappop(self._heap)[2]
        return None

    async def _process_queue(self) -> None:
        while True:
            request = self._next_request()
            if request is None:
                break

            # Caller gave up while the request was waiting
            if request.future.done():
                continue

            self._current = request
            try:
                await self._run(request)
            finally:
                self._current = None
                self._in_flight = False

    async def _run(self, request: QueuedRequest) -> None:
        await self._wait_for_slot()
        if request.future.done():
            return

        self._in_flight = True
        try:
            result = await request.execute()
        except Exception as error:
            self._in_flight = False
            await self._handle_failure(request, error)
        else:
            self._completions.append(self._clock())
            if not request.future.done():
                request.future.set_result(result)

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._completions and self._completions[0] <= cutoff:
            self._completions.popleft()

    async def _wait_for_slot(self) -> None:
        now = self._clock()
        self._prune(now)

        if len(self._completions) >= self.max_requests_per_window:
            wait = self._completions[0] + self.window_seconds - now
            if wait > 0:
                logger.info(f"Rate limit approaching. Waiting {wait:.1f}s...")
                await self._sleep(wait)
            # The oldest completion has now left the window
            self._completions.popleft()
            self._prune(self._clock())
        elif self._completions:
            await self._sleep(self.min_delay)

    async def _handle_failure(self, request: QueuedRequest, error: Exception) -> None:
        if request.retries >= self.max_retries:
            logger.error(
                f"Request {request.id} failed after {request.retries} retries: {error}"
            )
            if not request.future.done():
                request.future.set_exception(error)
            return

        backoff = self.base_backoff * 2 ** request.retries
        if isinstance(error, StravaRateLimitError):
            wait = max(error.retry_after or 0, backoff)
            logger.warning(
                f"Rate limited. Retrying {request.id} in {wait:.1f}s "
                f"(attempt {request.retries + 1}/{self.max_retries})"
            )
        else:
            wait = backoff
            logger.warning(
                f"Request {request.id} failed ({error}). Retrying in {wait:.1f}s "
                f"(attempt {request.retries + 1}/{self.max_retries})"
            )

        request.retries += 1
        await self._sleep(wait)
        self._retry_ahead.appendleft(request)
