"""
In-memory job store.
"""

import copy
import fnmatch

from jobqueue.exceptions import RecordNotFoundError
from jobqueue.storage.base import Record


class MemoryJobStore:
    """
    Dict-backed store.

    Records are deep-copied in and out so callers cannot mutate stored
    state. Survives queue restarts within one process, which is what tests
    need to exercise recovery.
    """

    def __init__(self):
        self._records: dict[str, Record] = {}

    async def save(self, key: str, record: Record) -> None:
        self._records[key] = copy.deepcopy(record)

    async def read(self, key: str) -> Record:
        try:
            return copy.deepcopy(self._records[key])
        except KeyError:
            raise RecordNotFoundError(key) from None

    async def list(self, pattern: str = "*") -> list[str]:
        return sorted(key for key in self._records if fnmatch.fnmatchcase(key, pattern))

    async def delete(self, key: str) -> bool:
        return self._records.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._records)
