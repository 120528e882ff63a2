from .composite_event_log import CompositeEventLog
from .events import (
    EVENT_KINDS,
    MASTER_MEMORY_PROGRESS,
    NEW_ENTITY,
    NEW_MEMORY,
    NEW_MESSAGES,
    REPROCESS_PROGRESS,
    SUMMARY_GENERATED,
    emit,
    make_event,
)
from .logging_event_log import LoggingEventLog
from .memory_event_log import InMemoryEventLog

__all__ = [
    "CompositeEventLog",
    "InMemoryEventLog",
    "LoggingEventLog",
    "EVENT_KINDS",
    "MASTER_MEMORY_PROGRESS",
    "NEW_ENTITY",
    "NEW_MEMORY",
    "NEW_MESSAGES",
    "REPROCESS_PROGRESS",
    "SUMMARY_GENERATED",
    "emit",
    "make_event",
]
