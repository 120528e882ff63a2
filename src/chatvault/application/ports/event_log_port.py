from __future__ import annotations

from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class EventLogPort(Protocol):
    """
    Outbound notification port.

    Events are plain dicts: {"kind": "...", "payload": {...}}. Emission is
    fire-and-forget; an implementation must never fail the caller.
    """

    def append(self, event: Dict[str, Any]) -> None:
        """Append one event."""

    def close(self) -> None:
        """Close underlying resources (optional)."""
