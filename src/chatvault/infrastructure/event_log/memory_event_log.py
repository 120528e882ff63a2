from __future__ import annotations

from typing import Any, Dict, List, Optional


class InMemoryEventLog:
    """In-memory event log (tests, CLI progress)."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def append(self, event: Dict[str, Any]) -> None:
        self.events.append(dict(event))

    def of_kind(self, kind: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e.get("kind") == kind]

    def last(self, kind: Optional[str] = None) -> Optional[Dict[str, Any]]:
        matching = self.of_kind(kind) if kind else self.events
        return matching[-1] if matching else None

    def clear(self) -> None:
        self.events.clear()

    def close(self) -> None:
        return None
