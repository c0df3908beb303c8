"""
Database layer for the agent routing system.

Single SQL database (SQLite by default, any SQLAlchemy URL via DATABASE_URL):
     messages         → final messages + workspace trail
     checkpoints      → conversation state per composite thread id
     routing_metrics  → conversation analysis telemetry
"""

from .sql_client import get_sql_engine, create_tables, get_session, reset_engine
from .message_store import SqlMessageStore, InMemoryMessageStore
from .checkpoint_store import SqlCheckpointStore, InMemoryCheckpointStore
from .metrics_store import RoutingMetricsSink, InMemoryMetricsSink, safe_record

__all__ = [
    # SQL
    "get_sql_engine",
    "get_session",
    "create_tables",
    "reset_engine",

    # Stores
    "SqlMessageStore",
    "InMemoryMessageStore",
    "SqlCheckpointStore",
    "InMemoryCheckpointStore",

    # Telemetry
    "RoutingMetricsSink",
    "InMemoryMetricsSink",
    "safe_record",
]
