"""
Event kinds emitted by the capture pipeline and bulk reprocess.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from chatvault.application.ports.event_log_port import EventLogPort

logger = logging.getLogger(__name__)

NEW_MEMORY = "new-memory"
NEW_ENTITY = "new-entity"
NEW_MESSAGES = "new-messages"
SUMMARY_GENERATED = "summary-generated"
REPROCESS_PROGRESS = "reprocess-progress"
MASTER_MEMORY_PROGRESS = "master-memory-progress"

EVENT_KINDS = frozenset({
    NEW_MEMORY,
    NEW_ENTITY,
    NEW_MESSAGES,
    SUMMARY_GENERATED,
    REPROCESS_PROGRESS,
    MASTER_MEMORY_PROGRESS,
})


def make_event(kind: str, **payload: Any) -> Dict[str, Any]:
    if kind not in EVENT_KINDS:
        raise ValueError(f"unknown event kind: {kind}")
    return {"kind": kind, "payload": payload}


def emit(event_log: Optional["EventLogPort"], kind: str, **payload: Any) -> None:
    """Fire-and-forget; a missing or failing sink never reaches the caller."""
    event = make_event(kind, **payload)
    if event_log is None:
        return
    try:
        event_log.append(event)
    except Exception as e:
        logger.debug(f"event {kind} not delivered: {e}")
