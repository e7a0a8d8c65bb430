"""Worker contexts, main-thread marshalling and future joins.

The pipeline never blocks its control thread. Work is submitted to named
single-purpose executors, completions arrive as ``concurrent.futures.Future``
callbacks on whatever thread finished the work, and anything that touches
pipeline state or the UI is posted back through a ``MainThreadDispatcher``.
"""

import functools
import logging
import queue
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class MainThreadDispatcher(ABC):
    """Runs callables on the thread that owns pipeline and UI state."""

    @abstractmethod
    def post(self, func: Callable, *args, **kwargs) -> None:
        """Schedule ``func(*args, **kwargs)`` on the main thread."""

    def shutdown(self) -> None:
        pass


class QueueDispatcher(MainThreadDispatcher):
    """Dispatcher pumped explicitly by the owning thread.

    Used for headless operation and in tests: the owner calls ``run_pending``
    or ``run_until`` from its own thread, which makes that thread the main
    thread for every posted callable.
    """

    def __init__(self):
        self._queue: "queue.Queue[tuple]" = queue.Queue()

    def post(self, func: Callable, *args, **kwargs) -> None:
        self._queue.put((func, args, kwargs))

    def _run(self, item: tuple) -> None:
        func, args, kwargs = item
        try:
            func(*args, **kwargs)
        except Exception as e:
            logger.exception(f"Main-thread callback {getattr(func, '__name__', func)} failed: {e}")

    def run_pending(self) -> int:
        """Run every callable queued so far. Returns how many ran."""
        count = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return count
            self._run(item)
            count += 1

    def run_until(self, predicate: Callable[[], bool], timeout: float = 5.0,
                  poll_interval: float = 0.01) -> bool:
        """Pump the queue until ``predicate()`` holds or ``timeout`` elapses."""
        deadline = time.monotonic() + timeout
        while True:
            self.run_pending()
            if predicate():
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            try:
                item = self._queue.get(timeout=min(poll_interval, remaining))
            except queue.Empty:
                continue
            self._run(item)


class TkDispatcher(MainThreadDispatcher):
    """Queue drained from the tkinter event loop.

    ``root.after`` must only be called from the Tk thread, so worker threads
    enqueue and the Tk loop polls.
    """

    def __init__(self, root, interval_ms: int = 16):
        self._root = root
        self._interval_ms = interval_ms
        self._queue: "queue.Queue[tuple]" = queue.Queue()
        self._is_shutting_down = False
        self._after_id = None
        self._process_updates()

    def _process_updates(self) -> None:
        if self._is_shutting_down:
            return
        try:
            while True:
                try:
                    func, args, kwargs = self._queue.get_nowait()
                except queue.Empty:
                    break
                try:
                    func(*args, **kwargs)
                except Exception as e:
                    logger.exception(f"UI update failed: {e}")
        finally:
            if not self._is_shutting_down:
                self._after_id = self._root.after(self._interval_ms, self._process_updates)

    def post(self, func: Callable, *args, **kwargs) -> None:
        if not self._is_shutting_down:
            self._queue.put((func, args, kwargs))

    def shutdown(self) -> None:
        self._is_shutting_down = True
        if self._after_id is not None:
            try:
                self._root.after_cancel(self._after_id)
            except Exception as e:
                logger.debug(f"after_cancel failed during shutdown: {e}")
            self._after_id = None


class WorkerContexts:
    """Named executors created on first use and shut down together."""

    def __init__(self):
        self._executors: Dict[str, ThreadPoolExecutor] = {}
        self._lock = threading.Lock()
        self._closed = False

    def get(self, name: str, max_workers: int = 1) -> ThreadPoolExecutor:
        with self._lock:
            if self._closed:
                raise RuntimeError("Worker contexts are shut down")
            executor = self._executors.get(name)
            if executor is None:
                executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
                self._executors[name] = executor
                logger.debug(f"Started worker context '{name}' with {max_workers} thread(s)")
            return executor

    def shutdown(self, wait: bool = False) -> None:
        with self._lock:
            executors = list(self._executors.items())
            self._executors.clear()
            self._closed = True
        for name, executor in executors:
            executor.shutdown(wait=wait, cancel_futures=True)
            logger.debug(f"Worker context '{name}' shut down")


def join_all(futures: Sequence[Future], timeout: Optional[float] = None,
             timeout_exception: Callable[[], BaseException] = TimeoutError) -> Future:
    """Join futures into one future holding their results in input order.

    The joined future fails with the first exception observed, or with
    ``timeout_exception()`` when ``timeout`` seconds pass first. Once it has
    settled, pending inputs are cancelled and later completions are ignored.
    """
    joined: Future = Future()
    futures = list(futures)
    if not futures:
        joined.set_result([])
        return joined

    results: List[Any] = [None] * len(futures)
    state = {'remaining': len(futures), 'settled': False}
    lock = threading.Lock()
    timer: Optional[threading.Timer] = None

    def settle(exception: Optional[BaseException] = None) -> None:
        with lock:
            if state['settled']:
                return
            state['settled'] = True
        if timer is not None:
            timer.cancel()
        if exception is not None:
            for future in futures:
                future.cancel()
            joined.set_exception(exception)
        else:
            joined.set_result(list(results))

    def on_done(index: int, future: Future) -> None:
        if future.cancelled():
            settle(RuntimeError(f"Request {index} was cancelled"))
            return
        exception = future.exception()
        if exception is not None:
            settle(exception)
            return
        with lock:
            if state['settled']:
                return
            results[index] = future.result()
            state['remaining'] -= 1
            complete = state['remaining'] == 0
        if complete:
            settle()

    if timeout is not None:
        timer = threading.Timer(timeout, lambda: settle(timeout_exception()))
        timer.daemon = True
        timer.start()

    for index, future in enumerate(futures):
        future.add_done_callback(functools.partial(on_done, index))

    return joined
