"""Custom exception hierarchy for the event core.

Caller-visible failures never use these: they travel as ``ErrorInfo``
through the failure callback.  The classes below signal programming
defects and configuration problems.
"""


class EventCoreError(Exception):
    """Base exception for all event core errors."""


# --- Configuration ---
class ConfigError(EventCoreError):
    """Invalid or missing configuration."""


# --- Execution ---
class QueueClosedError(EventCoreError):
    """Work submitted to a queue pool that has been shut down."""


# --- Contract violations ---
class MisuseError(EventCoreError):
    """A documented usage contract was violated."""


class DoubleCompletionError(MisuseError):
    """A completion callback was invoked more than once."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Completion for {operation!r} already delivered")


class ConcurrentLoadError(MisuseError):
    """``load_all`` called while a previous job on the same loader is pending."""


class OverFulfillmentError(MisuseError):
    """An expectation was fulfilled more times than it expected."""
