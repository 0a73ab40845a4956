"""Minimal listener registry shared by the services."""

import logging
from collections import defaultdict

logger = logging.getLogger("Events")


class EventEmitter:
    def __init__(self):
        self._listeners = defaultdict(list)

    def on(self, event, handler):
        self._listeners[event].append(handler)
        return handler

    def off(self, event, handler):
        if handler in self._listeners.get(event, []):
            self._listeners[event].remove(handler)

    def emit(self, event, *args, **kwargs):
        """Call every listener for `event`. Returns True if any were registered."""
        handlers = list(self._listeners.get(event, []))
        for handler in handlers:
            try:
                handler(*args, **kwargs)
            except Exception as e:
                logger.warning(f"⚠️ Listener for '{event}' failed: {e}")
        return bool(handlers)

    def listener_count(self, event):
        return len(self._listeners.get(event, []))

    def remove_all_listeners(self):
        self._listeners.clear()
