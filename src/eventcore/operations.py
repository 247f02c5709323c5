"""Reference operations built on ``CompletionDispatcher``.

* ``reverse_string_async``: reverses text on a background queue; the
  empty string short-circuits and completes synchronously, once.
* ``get_results``: success/failure pair; non-string provider names are
  rejected synchronously with ``ErrorInfo("TestError", 999, ...)``.
* ``get_results_with_status``: status callback strictly before results.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from eventcore.core.results import ErrorInfo, Success
from eventcore.execution.dispatcher import CompletionDispatcher
from eventcore.execution.task_queue import TaskQueue, WorkItem

logger = logging.getLogger(__name__)

PROVIDER_ERROR_DOMAIN = "TestError"
PROVIDER_ERROR_CODE = 999
PROVIDER_RESULTS = ("result1", "result2")


def _reverse(text: str) -> str:
    return text[::-1]


def _reject_non_string(value: Any) -> ErrorInfo | None:
    if isinstance(value, str):
        return None
    return ErrorInfo.validation(
        "providerName must be a string",
        code=PROVIDER_ERROR_CODE,
        domain=PROVIDER_ERROR_DOMAIN,
    )


def _empty_text(text: str) -> Success[str] | None:
    return Success("") if text == "" else None


def _provider_results(provider_name: str) -> list[str]:
    return list(PROVIDER_RESULTS)


def _known_results(provider_name: str) -> Success[list[str]]:
    return Success(list(PROVIDER_RESULTS))


def build_reverse_dispatcher(queue: TaskQueue) -> CompletionDispatcher[str, str]:
    return CompletionDispatcher(
        queue, _reverse, shortcut=_empty_text, name="reverse_string",
    )


def build_results_dispatcher(
    queue: TaskQueue,
    *,
    in_background: bool = False,
) -> CompletionDispatcher[Any, list[str]]:
    """Results are static, so by default they are answered synchronously.

    With *in_background* the lookup runs on *queue* instead.
    """
    return CompletionDispatcher(
        queue,
        _provider_results,
        validate=_reject_non_string,
        shortcut=None if in_background else _known_results,
        name="get_results",
    )


def reverse_string_async(
    text: str,
    completion: Callable[[str], None],
    *,
    dispatcher: CompletionDispatcher[str, str],
    failure: Callable[[ErrorInfo], None] | None = None,
) -> WorkItem | None:
    """Reverse *text* and pass it to *completion* exactly once.

    Reversal has no failure mode of its own; *failure* only sees runtime
    faults and defaults to logging them.
    """
    return dispatcher.dispatch(text, completion, failure or _log_failure)


def get_results(
    provider_name: Any,
    success: Callable[[list[str]], None],
    failure: Callable[[ErrorInfo], None],
    *,
    dispatcher: CompletionDispatcher[Any, list[str]],
) -> WorkItem | None:
    return dispatcher.dispatch(provider_name, success, failure)


def get_results_with_status(
    provider_name: Any,
    status: Callable[[bool], None],
    results: Callable[[list[str] | None], None],
    *,
    dispatcher: CompletionDispatcher[Any, list[str]],
) -> WorkItem | None:
    return dispatcher.dispatch_with_status(provider_name, status, results)


def _log_failure(error: ErrorInfo) -> None:
    logger.error("String reversal failed: %s (%s/%d)", error.message, error.domain, error.code)
