"""Listener registry shared by the gates.

Free-threading safety:
    - The listener list is guarded by a Lock
    - ``notify`` iterates a snapshot, so listeners may unsubscribe
      themselves while being called
    - A listener that raises is logged and skipped; the rest still run
"""

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger("waypoint.gates")


class Listeners[T]:
    """Ordered set of change listeners for one gate."""

    __slots__ = ("_listeners", "_lock")

    def __init__(self) -> None:
        self._listeners: list[Callable[[T], None]] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def add(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Register *listener* and return a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def notify(self, value: T) -> None:
        """Call every registered listener with *value*, in subscription order."""
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(value)
            except Exception:
                logger.exception("Listener %r failed on %r", listener, value)
