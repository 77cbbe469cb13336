"""Database infrastructure module.

This module provides database connectivity and persistence:
- Database engine management
- SQLAlchemy table definitions
"""

from playlist_agent.platform.database.engine import DbEngine
from playlist_agent.platform.database.tables import db_metadata, thread_messages

__all__ = [
    "DbEngine",
    "db_metadata",
    "thread_messages",
]
