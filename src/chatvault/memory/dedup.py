# src/chatvault/memory/dedup.py
"""
Divergence dedup for full-window captures.

Each capture is a re-scrape of the whole visible chat. Only the trailing
turns that are not yet stored get appended; stored rows are never edited.
Edits to earlier turns are not reconciled.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Union

from chatvault.memory.schema import CapturedMessage

MessageLike = Union[CapturedMessage, Mapping[str, Any]]


def _field(msg: MessageLike, name: str) -> Any:
    if isinstance(msg, Mapping):
        return msg.get(name)
    return getattr(msg, name, None)


def signature(msg: MessageLike) -> str:
    """`role|timestamp|content`, role lowercased, missing timestamp as ''."""
    role = str(_field(msg, "role") or "").lower()
    timestamp = _field(msg, "timestamp") or ""
    content = _field(msg, "content") or ""
    return f"{role}|{timestamp}|{content}"


def find_insert_start(
    stored: Sequence[MessageLike],
    incoming: Sequence[MessageLike],
) -> Optional[int]:
    """
    Index into `incoming` from which messages are new, or None if nothing is.

    1. nothing stored: everything is new
    2. last stored signature found scanning incoming backward: start after it
    3. otherwise start at the first incoming message absent from the stored set
    """
    if not incoming:
        return None
    if not stored:
        return 0

    last_sig = signature(stored[-1])
    for i in range(len(incoming) - 1, -1, -1):
        if signature(incoming[i]) == last_sig:
            start = i + 1
            return start if start < len(incoming) else None

    stored_sigs = {signature(m) for m in stored}
    for i, msg in enumerate(incoming):
        if signature(msg) not in stored_sigs:
            return i
    return None


def new_messages(
    stored: Sequence[MessageLike],
    incoming: Sequence[MessageLike],
) -> List[MessageLike]:
    start = find_insert_start(stored, incoming)
    return [] if start is None else list(incoming[start:])
