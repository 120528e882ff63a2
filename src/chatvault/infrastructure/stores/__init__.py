"""
SQLite persistence: ORM models, FTS5 indexes and one store class per aggregate.
"""

from .sqlalchemy_db import SessionProvider, create_db_engine, get_db_url
from .fts import create_schema, ensure_fts, rebuild_fts
from .conversation_store import ConversationStore
from .memory_store import MemoryStore
from .graph_store import GraphStore
from .summary_store import SummaryStore
from .settings_store import SettingsStore
from .search_index import SearchIndex

__all__ = [
    "SessionProvider",
    "create_db_engine",
    "get_db_url",
    "create_schema",
    "ensure_fts",
    "rebuild_fts",
    "ConversationStore",
    "MemoryStore",
    "GraphStore",
    "SummaryStore",
    "SettingsStore",
    "SearchIndex",
]
