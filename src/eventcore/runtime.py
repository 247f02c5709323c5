"""Runtime composition.

``Runtime`` owns the queue pool and the event bus and wires the reference
dispatchers and a ``BulkLoader`` on top of them.  Nothing in the package
is a process global: every component lives as long as its runtime.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from eventcore.bus.event_bus import EventBus
from eventcore.core.clock import IClock, WallClock
from eventcore.core.config import Settings, load_settings
from eventcore.execution.task_queue import QueuePool
from eventcore.loader import BulkLoader
from eventcore.observability.logger import setup_logging
from eventcore.operations import build_results_dispatcher, build_reverse_dispatcher

logger = logging.getLogger(__name__)


class Runtime:
    """Owner of every core component.

    Parameters
    ----------
    settings
        Validated settings; defaults to ``Settings()`` (env vars applied).
    clock
        Delay source for simulated latency.  Tests pass a ``SimClock``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        clock: IClock | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.settings.validate_runtime()

        obs = self.settings.observability
        if obs.configure_logging:
            setup_logging(level=obs.log_level, format=obs.log_format)

        self.clock = clock or WallClock()
        self.pool = QueuePool(
            max_workers=self.settings.queue.max_workers,
            thread_name_prefix=self.settings.queue.thread_name_prefix,
        )
        self.bus = EventBus(history_limit=self.settings.bus.history_limit)

        default_queue = self.pool.concurrent_queue()
        self.reverse_dispatcher = build_reverse_dispatcher(default_queue)
        self.results_dispatcher = build_results_dispatcher(default_queue)
        self.loader = BulkLoader(
            self.bus,
            self.pool,
            clock=self.clock,
            per_item_latency=self.settings.loader.per_item_latency_seconds,
        )

        logger.info(
            "Runtime started",
            extra={
                "max_workers": self.settings.queue.max_workers,
                "history_limit": self.settings.bus.history_limit,
            },
        )

    @classmethod
    def from_config(
        cls,
        config_path: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Runtime:
        return cls(load_settings(config_path, overrides), **kwargs)

    def __enter__(self) -> Runtime:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def new_loader(self, **kwargs: Any) -> BulkLoader:
        """Another loader sharing this runtime's bus, pool and clock."""
        kwargs.setdefault("clock", self.clock)
        kwargs.setdefault(
            "per_item_latency", self.settings.loader.per_item_latency_seconds,
        )
        return BulkLoader(self.bus, self.pool, **kwargs)

    def drain(self, timeout: float | None = None) -> bool:
        """Wait for all queued work; defaults to the configured drain timeout."""
        if timeout is None:
            timeout = self.settings.queue.drain_timeout_seconds
        return self.pool.drain(timeout)

    def close(self, wait: bool = True) -> None:
        self.pool.shutdown(wait=wait)
        logger.info("Runtime closed")
