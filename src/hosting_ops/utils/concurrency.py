"""Bounded fan-out, per-key concurrency limits and rate limiting.

Scripts that touch many accounts or resources fan independent calls out
over a thread pool. The limits are explicit parameters so they can come
from configuration instead of being hard-coded per script.
"""

import logging
import threading
import time
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Collection, Dict, Iterable, List, Optional, TypeVar

from ..core.errors import ErrorKind, classify_error


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class FailedItem:
    """An item whose processing raised."""

    item: Any
    error: BaseException
    kind: Optional[ErrorKind] = None


@dataclass
class BatchOutcome:
    """Results of a best-effort batch run."""

    succeeded: List[Any] = field(default_factory=list)
    failed: List[FailedItem] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when no item failed."""
        return not self.failed


def run_concurrently(
    fn: Callable[[T], R], items: Iterable[T], max_workers: int = 8
) -> List[R]:
    """Apply ``fn`` to every item with at most ``max_workers`` in flight.

    Args:
        fn: Function to apply
        items: Items to process
        max_workers: Concurrency limit

    Returns:
        Results in input order

    Raises:
        Exception: The first failure; remaining queued items are cancelled
    """
    items = list(items)
    if not items:
        return []

    results: List[Any] = [None] * len(items)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_index = {
            executor.submit(fn, item): index for index, item in enumerate(items)
        }
        try:
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()
        except BaseException:
            for future in future_to_index:
                future.cancel()
            raise
    return results


def run_best_effort(
    fn: Callable[[T], R],
    items: Iterable[T],
    max_workers: int = 8,
    skip_kinds: Optional[Collection[ErrorKind]] = None,
) -> BatchOutcome:
    """Apply ``fn`` to every item, collecting failures instead of raising.

    Args:
        fn: Function to apply
        items: Items to process
        max_workers: Concurrency limit
        skip_kinds: When given, only AWS errors of these kinds are collected;
                    any other failure propagates

    Returns:
        BatchOutcome with results of succeeded items (input order) and
        every failed item
    """
    items = list(items)
    outcome = BatchOutcome()
    if not items:
        return outcome

    results: Dict[int, Any] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_index = {
            executor.submit(fn, item): index for index, item in enumerate(items)
        }
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as e:
                kind = classify_error(e)
                if skip_kinds is not None and kind not in skip_kinds:
                    for pending in future_to_index:
                        pending.cancel()
                    raise
                logger.warning(
                    f"Skipping {items[index]!r}: {kind.value if kind else type(e).__name__}: {e}"
                )
                outcome.failed.append(FailedItem(items[index], e, kind))

    outcome.succeeded = [results[i] for i in sorted(results)]
    return outcome


@dataclass
class Task:
    """Unit of work for ConcurrentTaskRunner."""

    key: str
    run: Callable[[], Any]
    attempts: int = 0


class ConcurrentTaskRunner:
    """Runs tasks concurrently while limiting concurrency per key.

    Tasks sharing a key (for example an account id) never run more than
    ``max_concurrency_per_key`` at a time. Failed tasks are retried until
    ``max_attempts`` is reached, after which they are reported as failed.
    """

    def __init__(
        self,
        max_concurrency_per_key: int,
        max_workers: int = 16,
        max_attempts: int = 1,
    ) -> None:
        """Initialize task runner.

        Args:
            max_concurrency_per_key: Concurrent tasks allowed per key
            max_workers: Thread pool size across all keys
            max_attempts: Attempts per task before it counts as failed
        """
        if max_concurrency_per_key < 1:
            raise ValueError("max_concurrency_per_key must be at least 1")
        self.max_concurrency_per_key = max_concurrency_per_key
        self.max_workers = max_workers
        self.max_attempts = max(1, max_attempts)
        self._semaphores: Dict[str, threading.Semaphore] = defaultdict(
            lambda: threading.Semaphore(self.max_concurrency_per_key)
        )
        self._lock = threading.Lock()
        self._running: Dict[str, int] = defaultdict(int)
        self._peak: Dict[str, int] = defaultdict(int)

    def _semaphore(self, key: str) -> threading.Semaphore:
        with self._lock:
            return self._semaphores[key]

    def _execute(self, task: Task) -> Any:
        """Run one task under its key's semaphore, retrying on failure."""
        semaphore = self._semaphore(task.key)
        while True:
            task.attempts += 1
            with semaphore:
                with self._lock:
                    self._running[task.key] += 1
                    self._peak[task.key] = max(
                        self._peak[task.key], self._running[task.key]
                    )
                logger.info(f"Running task with key {task.key} (attempt {task.attempts})")
                try:
                    return task.run()
                except Exception:
                    if task.attempts >= self.max_attempts:
                        raise
                    logger.exception(f"Retrying task with key {task.key}")
                finally:
                    with self._lock:
                        self._running[task.key] -= 1

    def run(self, tasks: Iterable[Task]) -> BatchOutcome:
        """Run every task and wait for completion.

        Returns:
            BatchOutcome with task results in input order and failed tasks
        """
        return run_best_effort(self._execute, list(tasks), max_workers=self.max_workers)

    def peak_concurrency(self, key: str) -> int:
        """Highest number of tasks observed running at once for a key."""
        with self._lock:
            return self._peak.get(key, 0)


class RateLimiter:
    """In-process token bucket.

    ``points`` tokens are available per ``duration`` seconds and refill
    continuously. The limiter is not coordinated across processes.
    """

    def __init__(
        self,
        points: int,
        duration: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize rate limiter.

        Args:
            points: Tokens available per duration
            duration: Refill window in seconds
            clock: Monotonic time source
            sleep: Sleep function used while waiting for tokens
        """
        if points < 1 or duration <= 0:
            raise ValueError("points must be >= 1 and duration must be > 0")
        self.points = points
        self.duration = duration
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(points)
        self._updated = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._updated
        self._updated = now
        self._tokens = min(
            float(self.points), self._tokens + elapsed * self.points / self.duration
        )

    def try_acquire(self, tokens: int = 1) -> bool:
        """Take tokens if available without waiting."""
        with self._lock:
            self._refill()
            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    def acquire(self, tokens: int = 1) -> None:
        """Block until tokens are available, then take them."""
        if tokens > self.points:
            raise ValueError(f"Cannot acquire {tokens} tokens from a bucket of {self.points}")

        while True:
            with self._lock:
                self._refill()
                if self._tokens >= tokens:
                    self._tokens -= tokens
                    return
                wait = (tokens - self._tokens) * self.duration / self.points
            logger.debug(f"Rate limit reached, waiting {wait:.2f}s")
            self._sleep(wait)
