"""Tests for the flush scheduler."""

import threading

from entity_cache.features.cache.services.flush_scheduler import FlushScheduler


class TestFlushScheduler:
    """Test the fixed-delay timer thread."""

    def test_runs_callback_repeatedly(self):
        """Test the callback runs on every interval."""
        calls = []
        done = threading.Event()

        def callback():
            calls.append(1)
            if len(calls) >= 3:
                done.set()

        scheduler = FlushScheduler("test", 0.01, callback)
        scheduler.start()
        try:
            assert done.wait(2.0)
        finally:
            assert scheduler.stop(timeout=1.0)
        assert not scheduler.is_running

    def test_callback_errors_do_not_stop_timer(self):
        """Test a failing cycle is logged and the next one still runs."""
        calls = []
        done = threading.Event()

        def callback():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first cycle fails")
            done.set()

        scheduler = FlushScheduler("test", 0.01, callback)
        scheduler.start()
        try:
            assert done.wait(2.0)
        finally:
            scheduler.stop(timeout=1.0)

    def test_start_is_idempotent(self):
        """Test a second start keeps the same thread."""
        scheduler = FlushScheduler("test", 60.0, lambda: None)
        scheduler.start()
        thread = scheduler._thread
        scheduler.start()
        try:
            assert scheduler._thread is thread
            assert thread.daemon
            assert thread.name == "entity-cache-flush-test"
        finally:
            scheduler.stop(timeout=1.0)

    def test_stop_times_out_on_stuck_cycle(self):
        """Test stop gives up on a cycle that outlives the grace period."""
        started = threading.Event()
        release = threading.Event()

        def callback():
            started.set()
            release.wait(5.0)

        scheduler = FlushScheduler("stuck", 0.01, callback)
        scheduler.start()
        try:
            assert started.wait(2.0)
            assert scheduler.stop(timeout=0.05) is False
        finally:
            release.set()

    def test_stop_without_start(self):
        """Test stopping a scheduler that never started."""
        assert FlushScheduler("idle", 1.0, lambda: None).stop(timeout=0.1)
