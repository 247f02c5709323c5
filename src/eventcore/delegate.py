"""Single-observer delegate slot.

A ``DelegateSlot`` holds at most one observer implementing a one-method
capability and forwards calls to it synchronously.  The slot does not own
the observer: it keeps a weak reference, and an observer that has been
garbage collected reads as "no delegate".
"""

from __future__ import annotations

import logging
import weakref
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class MessageSenderDelegate(Protocol):
    """Capability notified by ``MessageSender``."""

    def message_received(self, message: str) -> None: ...


class DelegateSlot:
    """Optionally-empty, non-owning reference to one observer.

    Parameters
    ----------
    method_name
        Name of the capability method ``notify()`` calls.
    """

    def __init__(self, method_name: str) -> None:
        self.method_name = method_name
        self._ref: weakref.ref[Any] | None = None

    def set(self, observer: Any) -> None:
        """Install *observer*, replacing any previous one without notice.

        Raises ``TypeError`` if *observer* lacks the capability method or
        cannot be weakly referenced.
        """
        if not callable(getattr(observer, self.method_name, None)):
            raise TypeError(
                f"{type(observer).__name__} does not implement {self.method_name}()"
            )
        try:
            self._ref = weakref.ref(observer)
        except TypeError as exc:
            raise TypeError(
                f"{type(observer).__name__} cannot be held as a delegate: {exc}"
            ) from exc

    def clear(self) -> None:
        self._ref = None

    @property
    def delegate(self) -> Any | None:
        """The live observer, or ``None``."""
        if self._ref is None:
            return None
        return self._ref()

    @property
    def is_set(self) -> bool:
        return self.delegate is not None

    def notify(self, *args: Any, **kwargs: Any) -> bool:
        """Call the observer on the current thread.

        Returns ``False`` without doing anything when no live observer is
        set.  Exceptions raised by the observer propagate to the caller.
        """
        observer = self.delegate
        if observer is None:
            if self._ref is not None:
                logger.debug("Delegate for %s() was collected", self.method_name)
                self._ref = None
            return False
        getattr(observer, self.method_name)(*args, **kwargs)
        return True


class MessageSender:
    """Sends messages and tells its delegate about each one."""

    def __init__(self) -> None:
        self.delegate_slot = DelegateSlot("message_received")

    @property
    def delegate(self) -> MessageSenderDelegate | None:
        return self.delegate_slot.delegate

    @delegate.setter
    def delegate(self, observer: MessageSenderDelegate | None) -> None:
        if observer is None:
            self.delegate_slot.clear()
        else:
            self.delegate_slot.set(observer)

    def send_message(self, message: str) -> bool:
        """Returns whether a delegate was notified."""
        return self.delegate_slot.notify(message=f"{message} was sent!")
