"""In-process event channels.

:class:`EventBus` is a small observer registry keyed by event name. The
backend publishes free-text progress messages on
:data:`AUTH_PROGRESS_EVENT` while it finishes a login, and the
coordinator uses a private bus to notify observers of state changes.

Subscribing returns an unsubscribe callable so that the owner of a
listener can release it without keeping a reference to the callback.
Calling the unsubscribe function more than once is harmless.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

AUTH_PROGRESS_EVENT = "auth-progress"
"""Channel carrying human-readable status lines during a device login."""

Unsubscribe = Callable[[], None]


class EventBus:
    """Registry of event callbacks keyed by event name.

    Callbacks run synchronously, in registration order, on the thread
    (or event loop) that calls :meth:`emit`.

    Example::

        bus = EventBus()
        unsubscribe = bus.on("auth-progress", print)
        bus.emit("auth-progress", "Authenticating with Xbox Live...")
        unsubscribe()
    """

    def __init__(self) -> None:
        self._events: dict[str, list[Callable[..., Any]]] = {}

    def on(self, event: str, callback: Callable[..., Any]) -> Unsubscribe:
        """Register *callback* for *event*.

        Args:
            event: Event name.
            callback: Called with the positional arguments given to
                :meth:`emit`.

        Returns:
            A function that removes this registration. Only the first
            call has an effect.
        """
        self._events.setdefault(event, []).append(callback)
        registered = True

        def unsubscribe() -> None:
            nonlocal registered
            if not registered:
                return
            registered = False
            self._remove(event, callback)

        return unsubscribe

    def off(self, event: str, callback: Callable[..., Any] | None = None) -> None:
        """Remove one callback, or every callback when *callback* is ``None``."""
        if event not in self._events:
            return
        if callback is None:
            del self._events[event]
        else:
            self._remove(event, callback)

    def emit(self, event: str, *args: Any) -> None:
        """Call every callback registered for *event* with *args*."""
        callbacks = list(self._events.get(event, ()))
        if not callbacks:
            logger.debug("No listeners for event '%s'", event)
        for callback in callbacks:
            callback(*args)

    def listener_count(self, event: str) -> int:
        """Return the number of callbacks registered for *event*."""
        return len(self._events.get(event, ()))

    def _remove(self, event: str, callback: Callable[..., Any]) -> None:
        callbacks = self._events.get(event)
        if not callbacks:
            return
        try:
            callbacks.remove(callback)
        except ValueError:
            return
        if not callbacks:
            del self._events[event]
