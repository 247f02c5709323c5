"""Completion dispatch: run one operation and call back exactly once.

``CompletionDispatcher`` wraps an operation with three stages:

1. ``validate(input)``: returns an ``ErrorInfo`` when the input is
   rejected.  ``on_failure`` fires synchronously; nothing is queued.
2. ``shortcut(input)``: returns a ``Success`` when the answer is known
   without doing the work.  ``on_success`` fires synchronously and
   nothing is queued: a shortcut that also scheduled the async
   path would fulfil the caller twice.
3. Otherwise the operation runs on the dispatcher's ``TaskQueue`` and its
   result goes to exactly one of the two callbacks.

The success/failure pair shares a ``OnceGuard``; any second invocation
raises ``DoubleCompletionError``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from eventcore.core.errors import DoubleCompletionError
from eventcore.core.results import CompletionResult, ErrorInfo, Success
from eventcore.execution.task_queue import TaskQueue, WorkItem

logger = logging.getLogger(__name__)

I = TypeVar("I")
T = TypeVar("T")

Validator = Callable[[Any], "ErrorInfo | None"]
Shortcut = Callable[[Any], "Success[Any] | None"]


class OnceGuard:
    """Allow at most one invocation across every callback it wraps."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self._lock = threading.Lock()
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def wrap(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        def guarded(*args: Any, **kwargs: Any) -> Any:
            with self._lock:
                if self._fired:
                    raise DoubleCompletionError(self.operation)
                self._fired = True
            return fn(*args, **kwargs)

        return guarded


class CompletionDispatcher(Generic[I, T]):
    """Submit an operation and deliver its outcome to one callback.

    Parameters
    ----------
    queue
        Where the operation runs.
    operation
        ``input -> T``.  May also return a ``Failure`` to report an error
        without raising.
    validate
        Optional synchronous precondition check.
    shortcut
        Optional synchronous fast path for inputs that need no work.
    name
        Label used in logs and misuse errors.
    """

    def __init__(
        self,
        queue: TaskQueue,
        operation: Callable[[I], Any],
        *,
        validate: Validator | None = None,
        shortcut: Shortcut | None = None,
        name: str | None = None,
    ) -> None:
        self.queue = queue
        self.name = name or getattr(operation, "__name__", "operation")
        self._operation = operation
        self._validate = validate
        self._shortcut = shortcut

    def dispatch(
        self,
        value: I,
        on_success: Callable[[T], None],
        on_failure: Callable[[ErrorInfo], None],
    ) -> WorkItem | None:
        """Run the operation for *value*.

        Returns the queued ``WorkItem``, or ``None`` when the outcome was
        delivered synchronously (validation failure or shortcut).
        """
        guard = OnceGuard(self.name)
        success = guard.wrap(on_success)
        failure = guard.wrap(on_failure)

        error = self._check(value)
        if error is not None:
            logger.debug("%s rejected input: %s", self.name, error.message)
            failure(error)
            return None

        if self._shortcut is not None:
            short = self._shortcut(value)
            if short is not None:
                success(short.value)
                return None

        def deliver(result: CompletionResult) -> None:
            if result.is_success:
                success(result.value)
            else:
                failure(result.error)

        return self.queue.submit(lambda: self._operation(value), deliver)

    def dispatch_with_status(
        self,
        value: I,
        on_status: Callable[[bool], None],
        on_result: Callable[[T | None], None],
    ) -> WorkItem | None:
        """Report whether *value* can be processed, then report the result.

        ``on_status`` always fires synchronously before anything is
        scheduled, so it is observed strictly before ``on_result``.  Invalid
        input yields ``on_status(False)`` followed by ``on_result(None)``.
        """
        status = OnceGuard(f"{self.name}.status").wrap(on_status)
        result_cb = OnceGuard(f"{self.name}.result").wrap(on_result)

        if self._check(value) is not None:
            status(False)
            result_cb(None)
            return None

        status(True)

        if self._shortcut is not None:
            short = self._shortcut(value)
            if short is not None:
                result_cb(short.value)
                return None

        def deliver(result: CompletionResult) -> None:
            if result.is_success:
                result_cb(result.value)
            else:
                logger.warning(
                    "%s failed after positive status: %s",
                    self.name,
                    result.error.message,
                )
                result_cb(None)

        return self.queue.submit(lambda: self._operation(value), deliver)

    def _check(self, value: I) -> ErrorInfo | None:
        if self._validate is None:
            return None
        return self._validate(value)
