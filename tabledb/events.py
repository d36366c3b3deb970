"""
Synchronous observer lists.

A Signal holds an ordered list of callbacks and invokes each of them, in
registration order, when emitted. Dispatch is best-effort: a failing
listener is logged and skipped, it never unwinds the emitting operation.

Listeners must not block; they run inline with the write that triggered
them.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class Signal:
    """Named list of listeners.

    Example:
        >>> on_put = Signal("users.put")
        >>> unsubscribe = on_put.connect(lambda key, value: print(key))
        >>> on_put.emit("bob", {"_id": "bob"})
        bob
        >>> unsubscribe()
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._listeners: List[Listener] = []

    def connect(self, listener: Listener) -> Callable[[], None]:
        """Register a listener.

        Returns:
            Callable that removes the listener again
        """
        if not callable(listener):
            raise TypeError("listener must be callable")
        self._listeners.append(listener)
        return lambda: self.disconnect(listener)

    def disconnect(self, listener: Listener) -> None:
        """Remove a listener; unknown listeners are ignored."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def emit(self, *args: Any) -> None:
        """Invoke every listener with ``args``."""
        for listener in list(self._listeners):
            try:
                listener(*args)
            except Exception:
                logger.exception(f"Listener for signal '{self.name}' failed")

    def clear(self) -> None:
        """Remove all listeners."""
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
