"""Labelled background queues backed by a shared thread pool.

Design goals
------------
1.  **Serialization domains**: every label maps to one ``TaskQueue``.
    Work submitted to the same label runs one item at a time, in
    submission order.  Different labels run concurrently.
2.  **Non-blocking submit**: ``submit()`` only enqueues; it never waits
    for the work to start or finish.
3.  **Exactly-once completion**: each ``WorkItem`` resolves to one
    ``CompletionResult``.  Exceptions raised by the work are captured,
    logged, and delivered as ``Failure(ErrorInfo)``.  Nothing raised
    inside queued work reaches the submitter or kills a worker thread.
4.  **Drain barrier**: ``TaskQueue.sync()`` blocks until everything
    submitted before the call has completed, which is how callers (and
    tests) wait for fire-and-forget work without sleeping.

There is no cancellation and no timeout inside the queue; the optional
``timeout`` on ``sync()`` bounds only the caller's wait.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from eventcore.core.errors import DoubleCompletionError, MisuseError, QueueClosedError
from eventcore.core.ids import new_id
from eventcore.core.results import CompletionResult, ErrorInfo, Failure, Success
from eventcore.observability.logger import correlation_scope

logger = logging.getLogger(__name__)

GLOBAL_LABEL = "eventcore.global"

CompletionCallback = Callable[[CompletionResult], None]

# Queue whose drain loop (or concurrent item) the current thread is running.
_current = threading.local()


class WorkItem:
    """One unit of schedulable computation with a single outcome.

    ``work`` may return a plain value (wrapped in ``Success``) or a
    ready-made ``Success``/``Failure``.  The completion callback runs on
    the worker thread right after the work finishes.  ``on_settled`` runs
    after the callback and before ``done()`` turns true; queues use it to
    update their counts.
    """

    def __init__(
        self,
        work: Callable[[], Any],
        label: str,
        on_complete: CompletionCallback | None = None,
        *,
        on_settled: Callable[[WorkItem], None] | None = None,
    ) -> None:
        self.item_id = new_id()
        self.label = label
        self._work: Callable[[], Any] | None = work
        self._on_complete = on_complete
        self._on_settled = on_settled
        self._lock = threading.Lock()
        self._resolved = False
        self._result: CompletionResult | None = None
        self._done = threading.Event()

    def __repr__(self) -> str:
        state = "done" if self._done.is_set() else "pending"
        return f"WorkItem(id={self.item_id[:8]}, label={self.label!r}, {state})"

    def run(self) -> CompletionResult:
        """Execute the work and deliver its result. Called by the queue."""
        with correlation_scope(self.item_id):
            work = self._work
            if work is None:
                raise DoubleCompletionError(self.item_id)
            try:
                value = work()
                if isinstance(value, (Success, Failure)):
                    result = value
                else:
                    result = Success(value)
            except Exception as exc:
                logger.exception(
                    "Work item %s on queue %r raised", self.item_id, self.label,
                )
                result = Failure(ErrorInfo.from_exception(exc))
            self._resolve(result)
        return result

    def _resolve(self, result: CompletionResult) -> None:
        with self._lock:
            if self._resolved:
                raise DoubleCompletionError(self.item_id)
            self._resolved = True
            self._result = result
            callback = self._on_complete
            settled = self._on_settled
            # Release references once the outcome is fixed.
            self._work = None
            self._on_complete = None
            self._on_settled = None

        try:
            if callback is not None:
                try:
                    callback(result)
                except Exception:
                    logger.exception(
                        "Completion callback for work item %s raised",
                        self.item_id,
                    )
        finally:
            try:
                if settled is not None:
                    settled(self)
            finally:
                self._done.set()

    # -- Inspection ---------------------------------------------------------

    def done(self) -> bool:
        """True once the result has been delivered."""
        return self._done.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until delivered. Returns ``False`` on timeout."""
        return self._done.wait(timeout)

    @property
    def result(self) -> CompletionResult | None:
        return self._result


class TaskQueue:
    """A labelled execution context.

    Serial queues (the default) run one item at a time.  A concurrent
    queue hands each item to the pool directly.  Obtain queues from a
    ``QueuePool`` rather than constructing them.
    """

    def __init__(
        self,
        label: str,
        pool: QueuePool,
        *,
        concurrent: bool = False,
    ) -> None:
        self.label = label
        self.concurrent = concurrent
        self._pool = pool
        self._lock = threading.Lock()
        self._pending: deque[WorkItem] = deque()
        self._draining = False
        self._outstanding: dict[str, WorkItem] = {}
        self._completed_count = 0

    def __repr__(self) -> str:
        kind = "concurrent" if self.concurrent else "serial"
        return f"TaskQueue({self.label!r}, {kind})"

    # -- Core API -------------------------------------------------------------

    def submit(
        self,
        work: Callable[[], Any],
        on_complete: CompletionCallback | None = None,
    ) -> WorkItem:
        """Enqueue *work*; return its ``WorkItem`` without waiting.

        Raises
        ------
        QueueClosedError
            If the owning pool has been shut down.
        """
        item = WorkItem(work, self.label, on_complete, on_settled=self._settle)
        with self._lock:
            self._outstanding[item.item_id] = item
            if self.concurrent:
                start_drain = False
            else:
                self._pending.append(item)
                start_drain = not self._draining
                self._draining = True

        try:
            if self.concurrent:
                self._pool._execute(lambda: self._run_one(item))
            elif start_drain:
                self._pool._execute(self._drain)
        except QueueClosedError:
            with self._lock:
                self._outstanding.pop(item.item_id, None)
                if not self.concurrent:
                    self._pending.clear()
                    self._draining = False
            raise

        logger.debug("Submitted work item %s to %r", item.item_id, self.label)
        return item

    def sync(self, timeout: float | None = None) -> bool:
        """Block until all work submitted before this call has finished.

        Returns ``False`` if *timeout* elapsed first.  Calling ``sync`` from
        inside the queue's own work would wait on itself, so it raises
        ``MisuseError`` instead.
        """
        if getattr(_current, "queue", None) is self:
            raise MisuseError(f"sync() called from inside queue {self.label!r}")

        with self._lock:
            waiting = list(self._outstanding.values())

        if timeout is None:
            for item in waiting:
                item.wait()
            return True

        deadline = time.monotonic() + timeout
        for item in waiting:
            if not item.wait(max(deadline - time.monotonic(), 0)):
                return False
        return True

    # -- Observability ------------------------------------------------------

    @property
    def pending_count(self) -> int:
        """Items submitted but not yet completed."""
        with self._lock:
            return len(self._outstanding)

    @property
    def completed_count(self) -> int:
        return self._completed_count

    # -- Internals ----------------------------------------------------------

    def _run_one(self, item: WorkItem) -> None:
        previous = getattr(_current, "queue", None)
        _current.queue = self
        try:
            item.run()
        finally:
            _current.queue = previous

    def _settle(self, item: WorkItem) -> None:
        with self._lock:
            self._outstanding.pop(item.item_id, None)
            self._completed_count += 1

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._pending:
                    self._draining = False
                    return
                item = self._pending.popleft()
            self._run_one(item)


class QueuePool:
    """Owner of the worker threads and the label → queue registry.

    Parameters
    ----------
    max_workers
        Size of the shared ``ThreadPoolExecutor``.
    thread_name_prefix
        Prefix for worker thread names.
    """

    def __init__(
        self,
        max_workers: int = 8,
        *,
        thread_name_prefix: str = "eventcore",
    ) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self._lock = threading.Lock()
        self._queues: dict[str, TaskQueue] = {}
        self._closed = False
        self._concurrent = TaskQueue(GLOBAL_LABEL, self, concurrent=True)

    def __enter__(self) -> QueuePool:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown(wait=True)

    def queue(self, label: str) -> TaskQueue:
        """Return the serial queue for *label*, creating it on first use."""
        if label == GLOBAL_LABEL:
            return self._concurrent
        with self._lock:
            existing = self._queues.get(label)
            if existing is None:
                existing = TaskQueue(label, self)
                self._queues[label] = existing
                logger.debug("Created serial queue %r", label)
            return existing

    def concurrent_queue(self) -> TaskQueue:
        """The shared queue whose items may run in parallel."""
        return self._concurrent

    @property
    def labels(self) -> list[str]:
        with self._lock:
            return sorted(self._queues)

    @property
    def closed(self) -> bool:
        return self._closed

    def drain(self, timeout: float | None = None) -> bool:
        """``sync`` every queue. Returns ``False`` once *timeout* has elapsed.

        *timeout* bounds the whole drain, not each queue.
        """
        with self._lock:
            queues = [self._concurrent, *self._queues.values()]
        if timeout is None:
            return all([q.sync() for q in queues])
        deadline = time.monotonic() + timeout
        for q in queues:
            if not q.sync(max(deadline - time.monotonic(), 0)):
                return False
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work. With *wait*, finish everything queued first."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait)
        logger.info("Queue pool shut down (wait=%s)", wait)

    def _execute(self, fn: Callable[[], None]) -> None:
        if self._closed:
            raise QueueClosedError("queue pool has been shut down")
        try:
            self._executor.submit(fn)
        except RuntimeError as exc:
            raise QueueClosedError(str(exc)) from exc
