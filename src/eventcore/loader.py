"""BulkLoader: composite consumer of TaskQueue and EventBus.

``load_all`` preloads a batch inside one serialized job; ``load_one``
loads a single item on the concurrent queue and announces the outcome on
the bus as a ``fileLoaded`` event.

Only one ``load_all`` job may be outstanding per loader: ``preloaded`` is
not protected against two jobs appending at once.  A second call while a
job is pending raises ``ConcurrentLoadError`` instead of interleaving.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from eventcore.bus.event_bus import Event, EventBus
from eventcore.core.clock import IClock, WallClock
from eventcore.core.enums import LoadOutcome
from eventcore.core.errors import ConcurrentLoadError
from eventcore.execution.task_queue import QueuePool, TaskQueue, WorkItem

logger = logging.getLogger(__name__)

FILE_LOADED = "fileLoaded"
SUCCESS_CODE_KEY = "successCode"


class FileLoadedPayload(BaseModel):
    """Payload of a ``fileLoaded`` event.

    Strict: ``successCode`` only accepts ``LoadOutcome`` members, never a
    bare int or string.
    """

    model_config = ConfigDict(strict=True, frozen=True, populate_by_name=True)

    success_code: LoadOutcome = Field(alias=SUCCESS_CODE_KEY)
    file_name: str = Field(alias="fileName")

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class BulkLoader:
    """Loads named items in the background.

    Parameters
    ----------
    bus
        Where ``fileLoaded`` events are posted.
    pool
        Supplies the concurrent queue for ``load_one`` and resolves labels
        passed to ``load_all``.
    clock
        Delay source for the simulated per-item latency.
    per_item_latency
        Seconds spent per item in ``load_all``.
    reader
        Optional ``name -> Any`` doing the actual load in ``load_one``.  An
        exception from it turns into ``LoadOutcome.FAILURE``.
    """

    def __init__(
        self,
        bus: EventBus,
        pool: QueuePool,
        *,
        clock: IClock | None = None,
        per_item_latency: float = 1.0,
        reader: Callable[[str], Any] | None = None,
    ) -> None:
        self.preloaded: list[str] = []
        self._bus = bus
        self._pool = pool
        self._clock = clock or WallClock()
        self._per_item_latency = per_item_latency
        self._reader = reader
        self._lock = threading.Lock()
        self._job: WorkItem | None = None

    def load_all(self, items: Iterable[str], on: TaskQueue | str) -> WorkItem:
        """Preload *items* in input order on queue *on* (queue or label)."""
        queue = self._pool.queue(on) if isinstance(on, str) else on
        names = list(items)

        def preload() -> list[str]:
            for name in names:
                self._clock.sleep(self._per_item_latency)
                self.preloaded.append(name)
            logger.debug("Preloaded %d items on %r", len(names), queue.label)
            return names

        with self._lock:
            if self._job is not None and not self._job.done():
                raise ConcurrentLoadError(
                    f"load_all already pending on this loader ({self._job!r})"
                )
            self._job = queue.submit(preload)
            return self._job

    def load_one(self, name: str) -> WorkItem:
        """Load *name* on the concurrent queue and post ``fileLoaded``."""

        def load() -> LoadOutcome:
            outcome = LoadOutcome.SUCCESS
            if self._reader is not None:
                try:
                    self._reader(name)
                except Exception:
                    logger.exception("Loading %r failed", name)
                    outcome = LoadOutcome.FAILURE
            payload = FileLoadedPayload(success_code=outcome, file_name=name)
            self._bus.post(
                Event(name=FILE_LOADED, source=self, payload=payload.as_payload())
            )
            return outcome

        return self._pool.concurrent_queue().submit(load)

    @property
    def busy(self) -> bool:
        """True while a ``load_all`` job is outstanding."""
        with self._lock:
            return self._job is not None and not self._job.done()
