"""
Unit tests for the insight worker pool and inline scheduler.

Runners are plain callables, so no database is involved.
"""

import threading

import pytest

from quizpulse.insights.worker import InlineInsightScheduler, InsightWorkerPool


@pytest.fixture
def pool_factory():
    pools = []

    def _make(runner, **kwargs):
        kwargs.setdefault("backoff_seconds", 0.01)
        pool = InsightWorkerPool(runner=runner, **kwargs)
        pools.append(pool)
        return pool

    yield _make
    for pool in pools:
        pool.stop(timeout=1.0)


class TestWorkerPoolLifecycle:
    def test_enqueue_before_start_is_dropped(self, pool_factory):
        pool = pool_factory(lambda user_id: None)

        assert pool.enqueue("u1") is False
        assert pool.status.dropped == 1

    def test_start_and_stop(self, pool_factory):
        pool = pool_factory(lambda user_id: None, workers=3)
        pool.start()
        assert pool.status.is_running

        pool.stop()
        assert not pool.status.is_running

    def test_double_start_is_ignored(self, pool_factory):
        pool = pool_factory(lambda user_id: None, workers=1)
        pool.start()
        pool.start()

        assert len(pool._threads) == 1


class TestWorkerPoolJobs:
    def test_runs_enqueued_job(self, pool_factory):
        seen = []
        pool = pool_factory(seen.append)
        pool.start()

        assert pool.enqueue("u1")
        assert pool.wait_idle(timeout=5)

        assert seen == ["u1"]
        assert pool.status.succeeded == 1
        assert pool.status.last_success_at is not None

    def test_retries_then_succeeds(self, pool_factory):
        calls = []

        def flaky(user_id):
            calls.append(user_id)
            if len(calls) < 3:
                raise RuntimeError("database busy")

        pool = pool_factory(flaky, max_retries=3)
        pool.start()
        pool.enqueue("u1")
        assert pool.wait_idle(timeout=5)

        assert len(calls) == 3
        assert pool.status.retried == 2
        assert pool.status.succeeded == 1
        assert pool.status.failed == 0

    def test_gives_up_after_max_retries(self, pool_factory):
        calls = []

        def broken(user_id):
            calls.append(user_id)
            raise RuntimeError("boom")

        pool = pool_factory(broken, max_retries=2)
        pool.start()
        pool.enqueue("u1")
        assert pool.wait_idle(timeout=5)

        assert len(calls) == 3
        assert pool.status.failed == 1
        assert pool.status.last_error == "boom"

    def test_queued_user_is_coalesced(self, pool_factory):
        """A user already waiting in the queue is not queued a second time."""
        release = threading.Event()
        started = threading.Event()
        seen = []

        def runner(user_id):
            seen.append(user_id)
            if user_id == "blocker":
                started.set()
                release.wait(timeout=5)

        pool = pool_factory(runner, workers=1)
        pool.start()
        pool.enqueue("blocker")
        assert started.wait(timeout=5)

        assert pool.enqueue("u1")
        assert pool.enqueue("u1")
        assert pool.status.coalesced == 1

        release.set()
        assert pool.wait_idle(timeout=5)
        assert seen == ["blocker", "u1"]

    def test_running_user_is_rerun_not_overlapped(self, pool_factory):
        """A user enqueued mid-run gets one follow-up run, never a parallel one."""
        release = threading.Event()
        started = threading.Event()
        guard = threading.Lock()
        active = []
        overlaps = []
        runs = []

        def runner(user_id):
            with guard:
                if user_id in active:
                    overlaps.append(user_id)
                active.append(user_id)
                runs.append(user_id)
            started.set()
            release.wait(timeout=5)
            with guard:
                active.remove(user_id)

        pool = pool_factory(runner, workers=2)
        pool.start()
        pool.enqueue("u1")
        assert started.wait(timeout=5)

        assert pool.enqueue("u1")
        assert pool.enqueue("u1")

        release.set()
        assert pool.wait_idle(timeout=5)

        assert overlaps == []
        assert runs == ["u1", "u1"]
        assert pool.status.succeeded == 2
        assert pool.status.coalesced == 2

    def test_counters_are_exact_under_load(self, pool_factory):
        pool = pool_factory(lambda user_id: None, workers=4, queue_size=1000)
        pool.start()

        for i in range(200):
            pool.enqueue(f"user-{i}")
        assert pool.wait_idle(timeout=10)

        assert pool.status.enqueued == 200
        assert pool.status.succeeded == 200

    def test_full_queue_drops_jobs(self, pool_factory):
        release = threading.Event()
        started = threading.Event()

        def runner(user_id):
            started.set()
            release.wait(timeout=5)

        pool = pool_factory(runner, workers=1, queue_size=1)
        pool.start()
        pool.enqueue("blocker")
        assert started.wait(timeout=5)

        assert pool.enqueue("u1") is True
        assert pool.enqueue("u2") is False
        assert pool.status.dropped == 1

        release.set()
        assert pool.wait_idle(timeout=5)

    def test_wait_idle_times_out(self, pool_factory):
        release = threading.Event()

        pool = pool_factory(lambda user_id: release.wait(timeout=5), workers=1)
        pool.start()
        pool.enqueue("u1")

        assert pool.wait_idle(timeout=0.05) is False
        release.set()
        assert pool.wait_idle(timeout=5)


class TestInlineScheduler:
    def test_runs_synchronously(self):
        seen = []
        scheduler = InlineInsightScheduler(runner=seen.append)

        assert scheduler.enqueue("u1") is True
        assert seen == ["u1"]

    def test_failure_is_swallowed(self):
        def broken(user_id):
            raise RuntimeError("boom")

        scheduler = InlineInsightScheduler(runner=broken)

        assert scheduler.enqueue("u1") is False
