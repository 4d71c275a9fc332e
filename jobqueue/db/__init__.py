"""
Database module.
Contains database connection and models for the SQL job store.
"""

from jobqueue.db.connection import (
    close_db,
    get_engine,
    get_session_context,
    get_session_factory,
    get_test_engine,
    init_db,
)
from jobqueue.db.models import Base, QueueRecord

__all__ = [
    "get_engine",
    "get_test_engine",
    "get_session_factory",
    "get_session_context",
    "init_db",
    "close_db",
    "QueueRecord",
    "Base",
]
