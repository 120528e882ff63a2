from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional


class LoggingEventLog:
    """Emit events as JSON lines to the Python logger."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self._logger = logger or logging.getLogger("chatvault.eventlog")
        self._level = level

    def append(self, event: Dict[str, Any]) -> None:
        try:
            payload = json.dumps(event, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            payload = str(event)
        self._logger.log(self._level, payload)

    def close(self) -> None:
        return None
