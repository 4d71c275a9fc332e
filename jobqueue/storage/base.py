"""
Persistence adapter interface.

The queue sees storage as a flat key/record service. Records are JSON-safe
dicts; keys are plain strings such as ``queue_<job id>``.
"""

from typing import Any, Protocol, runtime_checkable

Record = dict[str, Any]


@runtime_checkable
class JobStore(Protocol):
    """
    Durable read/write/list/delete of job records by key.

    Implementations raise PersistenceError on I/O failure and
    RecordNotFoundError when reading a missing key.
    """

    async def save(self, key: str, record: Record) -> None:
        """Create or overwrite the record under key."""
        ...

    async def read(self, key: str) -> Record:
        """Return the record stored under key."""
        ...

    async def list(self, pattern: str = "*") -> list[str]:
        """Return the keys matching a glob pattern, sorted."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove key. Returns False if it did not exist."""
        ...
