"""
Background insight worker pool.

Recomputes insight snapshots off the request path:
- Bounded queue; enqueue never blocks and drops jobs when full
- A user already waiting in the queue is not queued twice
- Runs for one user never overlap; a user enqueued while running is re-run
  once after the current run finishes
- Failing runs retry with exponential backoff, then are dropped
- Shutdown abandons queued and backing-off jobs; runs are idempotent and
  re-triggered by the next completed attempt

Usage:
    pool = InsightWorkerPool(runner=engine.run, workers=2)
    pool.start()
    pool.enqueue(user_id)
    # ... service runs ...
    pool.stop()
"""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Protocol

from loguru import logger


class InsightScheduler(Protocol):
    def enqueue(self, user_id: str) -> bool: ...


@dataclass
class WorkerStatus:
    """Counters for the pool, read by health checks and tests."""

    is_running: bool = False
    enqueued: int = 0
    coalesced: int = 0
    succeeded: int = 0
    retried: int = 0
    failed: int = 0
    dropped: int = 0
    last_success_at: datetime | None = None
    last_error: str | None = None


@dataclass
class InsightWorkerPool:
    runner: Callable[[str], Any]
    workers: int = 2
    queue_size: int = 256
    max_retries: int = 3
    backoff_seconds: float = 0.5

    # Internal state
    _status: WorkerStatus = field(default_factory=WorkerStatus)
    _queue: queue.Queue | None = field(default=None, repr=False)
    _pending: set[str] = field(default_factory=set, repr=False)
    _running: set[str] = field(default_factory=set, repr=False)
    _dirty: set[str] = field(default_factory=set, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _threads: list[threading.Thread] = field(default_factory=list, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)

    def __post_init__(self) -> None:
        self._queue = queue.Queue(maxsize=self.queue_size)

    @property
    def status(self) -> WorkerStatus:
        return self._status

    def start(self) -> None:
        if self._status.is_running:
            logger.warning("Insight worker pool already running")
            return

        self._stop_event.clear()
        self._threads = [
            threading.Thread(target=self._work_loop, name=f"insight-worker-{i}", daemon=True)
            for i in range(self.workers)
        ]
        for thread in self._threads:
            thread.start()
        self._status.is_running = True
        logger.info("Insight worker pool started ({} workers, queue {})", self.workers, self.queue_size)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop workers; queued jobs are discarded."""
        if not self._status.is_running:
            return

        logger.info("Stopping insight worker pool...")
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=timeout)

        discarded = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break
            self._queue.task_done()
            discarded += 1
        with self._lock:
            self._pending.clear()
            self._dirty.clear()

        self._status.is_running = False
        if discarded:
            logger.info("Discarded {} queued insight jobs on shutdown", discarded)
        logger.info("Insight worker pool stopped")

    def enqueue(self, user_id: str) -> bool:
        """
        Queue an insight run for a user.

        Returns:
            True if the user is queued (now or already), False if dropped
        """
        if not self._status.is_running:
            logger.warning("Insight worker pool not running; dropping job for user {}", user_id)
            self._count("dropped")
            return False

        with self._lock:
            if user_id in self._pending:
                self._status.coalesced += 1
                return True
            if user_id in self._running:
                self._dirty.add(user_id)
                self._status.coalesced += 1
                return True
            try:
                self._queue.put_nowait(user_id)
            except queue.Full:
                self._status.dropped += 1
                logger.warning("Insight queue full; dropping job for user {}", user_id)
                return False
            self._pending.add(user_id)
            self._status.enqueued += 1

        logger.debug("Insight run queued for user {}", user_id)
        return True

    def wait_idle(self, timeout: float = 10.0) -> bool:
        """Block until every queued job has finished. Returns False on timeout."""
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    def _work_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                user_id = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue

            with self._lock:
                self._pending.discard(user_id)
                self._running.add(user_id)

            try:
                self._run_user(user_id)
            finally:
                self._queue.task_done()

    def _run_user(self, user_id: str) -> None:
        """Run until no newer completion arrived for the user during the last run."""
        try:
            while True:
                self._run_with_retry(user_id)
                with self._lock:
                    if user_id not in self._dirty or self._stop_event.is_set():
                        return
                    self._dirty.discard(user_id)
                logger.debug("Re-running insights for user {} after a newer completion", user_id)
        finally:
            with self._lock:
                self._running.discard(user_id)
                self._dirty.discard(user_id)

    def _count(self, name: str) -> None:
        with self._lock:
            setattr(self._status, name, getattr(self._status, name) + 1)

    def _run_with_retry(self, user_id: str) -> None:
        for attempt in range(self.max_retries + 1):
            if self._stop_event.is_set():
                logger.debug("Abandoning insight run for user {} on shutdown", user_id)
                return
            try:
                self.runner(user_id)
            except Exception as exc:  # Intentionally broad - insight failures never reach callers
                self._status.last_error = str(exc)
                if attempt >= self.max_retries:
                    self._count("failed")
                    logger.error(
                        "Insight run for user {} failed after {} attempts: {}",
                        user_id,
                        attempt + 1,
                        exc,
                    )
                    return

                delay = self.backoff_seconds * (2**attempt)
                self._count("retried")
                logger.warning(
                    "Insight run for user {} failed ({}); retrying in {:.2f}s",
                    user_id,
                    exc,
                    delay,
                )
                if self._stop_event.wait(timeout=delay):
                    return
            else:
                self._count("succeeded")
                self._status.last_success_at = datetime.now()
                logger.info("Insight run succeeded for user {}", user_id)
                return


@dataclass
class InlineInsightScheduler:
    """Runs insight jobs synchronously; failures are logged, never raised."""

    runner: Callable[[str], Any]

    def enqueue(self, user_id: str) -> bool:
        try:
            self.runner(user_id)
        except Exception as exc:  # Intentionally broad - insight failures never reach callers
            logger.error("Insight run for user {} failed: {}", user_id, exc)
            return False
        return True
