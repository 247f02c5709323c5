"""Background execution: labelled queues and completion dispatch."""

from eventcore.execution.dispatcher import CompletionDispatcher, OnceGuard
from eventcore.execution.task_queue import QueuePool, TaskQueue, WorkItem

__all__ = ["CompletionDispatcher", "OnceGuard", "QueuePool", "TaskQueue", "WorkItem"]
