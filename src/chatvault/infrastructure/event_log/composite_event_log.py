from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from chatvault.application.ports.event_log_port import EventLogPort

logger = logging.getLogger(__name__)


class CompositeEventLog:
    """
    Tee events to multiple backends.

    A failing backend is logged at debug level and skipped; the caller never
    sees the error.
    """

    def __init__(self, backends: Optional[List[EventLogPort]] = None):
        self._backends = [b for b in (backends or []) if b is not None]
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []

    def add_backend(self, backend: EventLogPort) -> None:
        self._backends.append(backend)

    def subscribe(self, listener: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        """Register a callable for every event; returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def append(self, event: Dict[str, Any]) -> None:
        for backend in self._backends:
            try:
                backend.append(event)
            except Exception as e:
                logger.debug(f"CompositeEventLog backend append failed: {e}")
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.debug(f"CompositeEventLog listener failed: {e}")

    def close(self) -> None:
        for backend in self._backends:
            try:
                backend.close()
            except Exception as e:
                logger.debug(f"CompositeEventLog backend close failed: {e}")
