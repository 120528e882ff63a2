from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Pattern, Tuple

from chatvault.memory.schema import CapturedMessage


@dataclass(frozen=True)
class PlatformProfile:
    """
    Per-platform parsing table.

    `role_labels` are (label, role) pairs matched case-insensitively at the
    start of a line once any leading `[TAG]` is removed.
    """

    name: str
    app_name: Optional[str] = None
    noise_literals: FrozenSet[str] = frozenset()
    noise_patterns: Tuple[Pattern[str], ...] = ()
    noise_prefixes: Tuple[str, ...] = ()
    role_labels: Tuple[Tuple[str, str], ...] = ()

    def is_noise(self, value: str) -> bool:
        lower = value.lower()
        if not lower:
            return True
        if lower in self.noise_literals:
            return True
        if any(p.search(lower) for p in self.noise_patterns):
            return True
        return lower.startswith(self.noise_prefixes) if self.noise_prefixes else False

    @property
    def filters_noise(self) -> bool:
        return bool(self.noise_literals or self.noise_patterns or self.noise_prefixes)


@dataclass
class ParsedCapture:
    platform: str
    app_name: str
    messages: List[CapturedMessage] = field(default_factory=list)
    chat_title: Optional[str] = None
    window_title: Optional[str] = None
    browser_url: Optional[str] = None
    fallback_title: Optional[str] = None

    @property
    def title(self) -> str:
        return self.chat_title or self.fallback_title or "Untitled Chat"

    @property
    def session_id(self) -> str:
        from .common import derive_session_id
        return derive_session_id(self.app_name, self.title)
