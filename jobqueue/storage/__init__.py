"""
Storage module.
Contains the persistence adapter interface and its backends.
"""

from jobqueue.storage.base import JobStore, Record
from jobqueue.storage.files import FileJobStore
from jobqueue.storage.memory import MemoryJobStore
from jobqueue.storage.sql import SqlJobStore

__all__ = [
    "JobStore",
    "Record",
    "MemoryJobStore",
    "FileJobStore",
    "SqlJobStore",
]
