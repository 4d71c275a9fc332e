"""
SQL job store.

Keeps records in the ``queue_records`` table through an async SQLAlchemy
session factory. Works with any async driver the engine is built with
(asyncpg in production, aiosqlite in tests).
"""

import fnmatch
import re

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobqueue.db.connection import get_session_context
from jobqueue.db.models import QueueRecord
from jobqueue.exceptions import PersistenceError, RecordNotFoundError
from jobqueue.storage.base import Record

_GLOB_CHARS = re.compile(r"[*?\[]")


class SqlJobStore:
    """Job store backed by the queue_records table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize the store.

        Args:
            session_factory: Factory for sessions bound to an initialized engine.
        """
        self._session_factory = session_factory

    async def save(self, key: str, record: Record) -> None:
        try:
            async with get_session_context(self._session_factory) as session:
                await session.merge(QueueRecord(key=key, data=record))
        except SQLAlchemyError as e:
            raise PersistenceError("save", key, str(e)) from e

    async def read(self, key: str) -> Record:
        try:
            async with get_session_context(self._session_factory) as session:
                row = await session.get(QueueRecord, key)
        except SQLAlchemyError as e:
            raise PersistenceError("read", key, str(e)) from e

        if row is None:
            raise RecordNotFoundError(key)
        return dict(row.data)

    async def list(self, pattern: str = "*") -> list[str]:
        # Narrow with the literal prefix in SQL, then match the full glob here
        prefix = _GLOB_CHARS.split(pattern, maxsplit=1)[0]
        stmt = select(QueueRecord.key).order_by(QueueRecord.key)
        if prefix:
            stmt = stmt.where(QueueRecord.key.startswith(prefix, autoescape=True))

        try:
            async with get_session_context(self._session_factory) as session:
                result = await session.execute(stmt)
                keys = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError("list", pattern, str(e)) from e

        return [key for key in keys if fnmatch.fnmatchcase(key, pattern)]

    async def delete(self, key: str) -> bool:
        try:
            async with get_session_context(self._session_factory) as session:
                result = await session.execute(
                    delete(QueueRecord).where(QueueRecord.key == key)
                )
        except SQLAlchemyError as e:
            raise PersistenceError("delete", key, str(e)) from e
        return result.rowcount > 0
