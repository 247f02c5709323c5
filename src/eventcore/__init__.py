"""Asynchronous-event core: background completion dispatch, named-event
broadcast, and single-observer delegates."""

from eventcore.bus.event_bus import Event, EventBus, SubscriptionHandle
from eventcore.core.enums import LoadOutcome
from eventcore.core.results import CompletionResult, ErrorInfo, Failure, Success
from eventcore.delegate import DelegateSlot, MessageSender, MessageSenderDelegate
from eventcore.execution.dispatcher import CompletionDispatcher
from eventcore.execution.task_queue import QueuePool, TaskQueue, WorkItem
from eventcore.loader import FILE_LOADED, BulkLoader

__all__ = [
    "FILE_LOADED",
    "BulkLoader",
    "CompletionDispatcher",
    "CompletionResult",
    "DelegateSlot",
    "ErrorInfo",
    "Event",
    "EventBus",
    "Failure",
    "LoadOutcome",
    "MessageSender",
    "MessageSenderDelegate",
    "QueuePool",
    "Success",
    "SubscriptionHandle",
    "TaskQueue",
    "WorkItem",
]
