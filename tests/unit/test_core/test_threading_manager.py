"""Unit tests for future joins, dispatchers and worker contexts."""
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor

import pytest

from textreader.core.threading_manager import QueueDispatcher, WorkerContexts, join_all

pytestmark = pytest.mark.unit


class TestJoinAll:

    def test_empty_input_resolves_immediately(self):
        joined = join_all([])
        assert joined.done()
        assert joined.result() == []

    def test_results_keep_input_order(self):
        with ThreadPoolExecutor(max_workers=4) as pool:
            delays = [0.15, 0.05, 0.1, 0.0]
            futures = [pool.submit(lambda i=i, d=d: (time.sleep(d), i)[1]) for i, d in enumerate(delays)]

            assert join_all(futures).result(timeout=2) == [0, 1, 2, 3]

    def test_first_failure_wins(self):
        ok, bad, pending = Future(), Future(), Future()
        joined = join_all([ok, bad, pending])

        ok.set_result("fine")
        bad.set_exception(ValueError("broken"))

        with pytest.raises(ValueError, match="broken"):
            joined.result(timeout=1)
        assert pending.cancelled()

    def test_late_results_after_failure_are_ignored(self):
        first, second = Future(), Future()
        second.set_running_or_notify_cancel()
        joined = join_all([first, second])

        first.set_exception(RuntimeError("boom"))
        second.set_result("late")

        assert isinstance(joined.exception(timeout=1), RuntimeError)

    def test_timeout(self):
        never = Future()
        joined = join_all([never], timeout=0.05, timeout_exception=lambda: TimeoutError("too slow"))

        with pytest.raises(TimeoutError, match="too slow"):
            joined.result(timeout=2)

    def test_timer_does_not_fire_after_success(self):
        done = Future()
        done.set_result(1)
        joined = join_all([done], timeout=0.05)
        time.sleep(0.1)
        assert joined.result() == [1]


class TestQueueDispatcher:

    def test_posted_calls_run_on_pumping_thread(self):
        dispatcher = QueueDispatcher()
        seen = []
        worker = threading.Thread(target=lambda: dispatcher.post(lambda: seen.append(threading.current_thread())))
        worker.start()
        worker.join()

        assert dispatcher.run_pending() == 1
        assert seen == [threading.current_thread()]

    def test_run_until_times_out(self):
        dispatcher = QueueDispatcher()
        assert dispatcher.run_until(lambda: False, timeout=0.05) is False

    def test_failing_callback_does_not_stop_queue(self):
        dispatcher = QueueDispatcher()
        seen = []

        def broken():
            raise RuntimeError("bad callback")

        dispatcher.post(broken)
        dispatcher.post(seen.append, "after")

        assert dispatcher.run_pending() == 2
        assert seen == ["after"]


class TestWorkerContexts:

    def test_named_contexts_are_reused(self):
        workers = WorkerContexts()
        try:
            assert workers.get("capture") is workers.get("capture")
            name = workers.get("processing").submit(lambda: threading.current_thread().name).result(timeout=1)
            assert name.startswith("processing")
        finally:
            workers.shutdown(wait=True)

    def test_get_after_shutdown_fails(self):
        workers = WorkerContexts()
        workers.shutdown()
        with pytest.raises(RuntimeError):
            workers.get("capture")
