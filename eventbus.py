"""
CEC Event Bus - named events delivered to registered callbacks

Events are emitted in the order their source lines were received. A failing
handler is logged and never stops delivery to the other handlers.
"""

import logging
import threading
from typing import Callable, Dict, List


class CECEventBus:
    """Event bus for caller-facing CEC events"""

    def __init__(self):
        self.logger = logging.getLogger('CECEventBus')
        self._handlers: Dict[str, List[Callable]] = {}
        self._lock = threading.Lock()

    def on(self, event: str, handler: Callable) -> None:
        """Register a handler for every emission of event"""
        with self._lock:
            self._handlers.setdefault(event, []).append(handler)

    def once(self, event: str, handler: Callable) -> None:
        """Register a handler that is removed after its first call"""
        def wrapper(*args):
            self.off(event, wrapper)
            handler(*args)

        wrapper.__name__ = getattr(handler, '__name__', 'handler')
        self.on(event, wrapper)

    def off(self, event: str, handler: Callable) -> None:
        """Remove a handler; unknown handlers are ignored"""
        with self._lock:
            handlers = self._handlers.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._handlers.get(event, []))

    def emit(self, event: str, *args) -> None:
        """
        Dispatch an event to all registered handlers.

        Args:
            event: Event name, e.g. "ready" or "0:powerStatus"
            *args: Payload passed to each handler
        """
        with self._lock:
            handlers = list(self._handlers.get(event, []))

        self.logger.debug(f"Event '{event}' {args} -> {len(handlers)} handler(s)")

        for handler in handlers:
            try:
                handler(*args)
            except Exception as e:
                self.logger.error(f"Error in handler for '{event}': {e}")
