"""
Unit tests for the worker thread pool.
"""

import threading
import time

import pytest

from usersapi.core import ThreadPool


class TestThreadPool:
    """Tests for ThreadPool."""

    def test_submit_before_start(self):
        with pytest.raises(RuntimeError):
            ThreadPool(min_workers=1, max_workers=1).submit(print)

    def test_runs_tasks(self):
        pool = ThreadPool(min_workers=2, max_workers=4)
        pool.start()
        done = threading.Event()
        results = []

        def task(value):
            results.append(value)
            if len(results) == 3:
                done.set()

        try:
            for i in range(3):
                assert pool.submit(task, args=(i,)) is True
            assert done.wait(timeout=5.0)
        finally:
            pool.shutdown(wait=True, timeout=5.0)

        assert sorted(results) == [0, 1, 2]
        assert pool.is_running is False

    def test_full_queue_rejects(self):
        """With block=False a full queue is reported, not waited on."""
        pool = ThreadPool(min_workers=1, max_workers=1, queue_size=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()

        def blocker():
            started.set()
            release.wait(timeout=5.0)

        try:
            assert pool.submit(blocker)
            assert started.wait(timeout=5.0)
            assert pool.submit(blocker, block=False) is True   # fills the queue
            assert pool.submit(blocker, block=False) is False
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_failing_task_does_not_kill_worker(self):
        """An exception is logged and the same worker takes the next task."""
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        done = threading.Event()

        def boom():
            raise RuntimeError("boom")

        try:
            pool.submit(boom)
            pool.submit(done.set)
            assert done.wait(timeout=5.0)
        finally:
            pool.shutdown(wait=True, timeout=5.0)

    def test_stale_task_is_dropped(self):
        """A task that waited past its timeout runs on_drop instead of func."""
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        release = threading.Event()
        started = threading.Event()
        ran = threading.Event()
        dropped = threading.Event()

        def blocker():
            started.set()
            release.wait(timeout=5.0)

        try:
            pool.submit(blocker)
            assert started.wait(timeout=5.0)
            pool.submit(ran.set, timeout=0.01, on_drop=dropped.set)
            time.sleep(0.1)
            release.set()

            assert dropped.wait(timeout=5.0)
            assert not ran.is_set()
        finally:
            release.set()
            pool.shutdown(wait=True, timeout=5.0)

    def test_fresh_task_ignores_on_drop(self):
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        ran = threading.Event()
        dropped = threading.Event()

        try:
            pool.submit(ran.set, timeout=5.0, on_drop=dropped.set)
            assert ran.wait(timeout=5.0)
            assert not dropped.is_set()
        finally:
            pool.shutdown(wait=True, timeout=5.0)

    def test_submit_after_shutdown(self):
        pool = ThreadPool(min_workers=1, max_workers=1)
        pool.start()
        pool.shutdown(wait=True, timeout=5.0)

        with pytest.raises(RuntimeError):
            pool.submit(print)
