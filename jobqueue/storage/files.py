"""
Filesystem job store.

One JSON document per key, ``<directory>/<quoted key>.json``. Keys are
percent-encoded into file names, so any job type (spaces, slashes,
non-ASCII) maps to a single file inside the directory. Writes go to a
temporary file first and are renamed into place so a crash never leaves a
half-written record behind.
"""

import asyncio
import fnmatch
import json
import logging
import os
from pathlib import Path
from urllib.parse import quote, unquote

from jobqueue.exceptions import PersistenceError, RecordNotFoundError
from jobqueue.storage.base import Record

logger = logging.getLogger(__name__)

SUFFIX = ".json"


def key_to_filename(key: str) -> str:
    """Encode a store key as a file name that cannot leave the directory."""
    name = quote(key, safe="")
    # "." and ".." survive quoting; a leading dot would also hide the file
    if name.startswith("."):
        name = "%2E" + name[1:]
    return f"{name}{SUFFIX}"


def filename_to_key(filename: str) -> str:
    return unquote(filename[: -len(SUFFIX)])


class FileJobStore:
    """Job store backed by a directory of JSON files."""

    def __init__(self, directory: str | os.PathLike[str]):
        """
        Initialize the store.

        Args:
            directory: Where records live. Created on first write.
        """
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not key:
            raise PersistenceError("resolve", key, "empty key")
        return self.directory / key_to_filename(key)

    def _keys(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return [
            filename_to_key(path.name)
            for path in self.directory.iterdir()
            if path.name.endswith(SUFFIX) and path.is_file()
        ]

    async def save(self, key: str, record: Record) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(self._write, path, record)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError("save", key, str(e)) from e
        logger.debug("Record saved", extra={"key": key, "path": str(path)})

    def _write(self, path: Path, record: Record) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        data = json.dumps(record, indent=2)
        tmp_path = path.with_name(f"{path.name}.tmp")
        tmp_path.write_text(data, encoding="utf-8")
        os.replace(tmp_path, path)

    async def read(self, key: str) -> Record:
        path = self._path(key)
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            raise RecordNotFoundError(key) from None
        except OSError as e:
            raise PersistenceError("read", key, str(e)) from e

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise PersistenceError("read", key, f"invalid JSON: {e}") from e

    async def list(self, pattern: str = "*") -> list[str]:
        try:
            keys = await asyncio.to_thread(self._keys)
        except OSError as e:
            raise PersistenceError("list", pattern, str(e)) from e
        return sorted(key for key in keys if fnmatch.fnmatchcase(key, pattern))

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError("delete", key, str(e)) from e
        return True
