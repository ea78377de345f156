"""
Persistent storage backends for fetched metadata.

The managers keep an in-memory mirror of their cache and write every
change through one of these backends. Entries are addressed by an owner
key (repository path or email), an optional sub key (commit hash) and an
optional id (status id):

- CI statuses:  repo -> hash -> status id -> record
- Avatars:      email -> record

Writes are fire-and-forget: a failing write is logged, never raised.
"""

import copy
import json
import os
import tempfile
import threading
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class CacheStorage(ABC):
    """Interface of a key-value store holding one cache."""

    @abstractmethod
    def load_initial_cache(self) -> Dict[str, Any]:
        """Return a snapshot of everything stored."""

    @abstractmethod
    def save_entry(self, owner_key: str, sub_key: Optional[str], entry_id: Optional[str],
                   record: Dict[str, Any]) -> None:
        """Store one record."""

    @abstractmethod
    def remove_entry(self, owner_key: str, sub_key: Optional[str] = None) -> None:
        """Remove all records of an owner key, or of one of its sub keys."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all records."""


class MemoryStorage(CacheStorage):
    """Storage kept in process memory only."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.Lock()

    def load_initial_cache(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._data)

    def save_entry(self, owner_key, sub_key, entry_id, record):
        with self._lock:
            if sub_key is None:
                self._data[owner_key] = copy.deepcopy(record)
            else:
                owner = self._data.setdefault(owner_key, {})
                if entry_id is None:
                    owner[sub_key] = copy.deepcopy(record)
                else:
                    owner.setdefault(sub_key, {})[str(entry_id)] = copy.deepcopy(record)
        self._persist()

    def remove_entry(self, owner_key, sub_key=None):
        with self._lock:
            if sub_key is None:
                self._data.pop(owner_key, None)
            elif isinstance(self._data.get(owner_key), dict):
                self._data[owner_key].pop(sub_key, None)
                if not self._data[owner_key]:
                    del self._data[owner_key]
        self._persist()

    def clear(self):
        with self._lock:
            self._data.clear()
        self._persist()

    def _persist(self):
        """Hook for subclasses writing the data somewhere."""


class JsonFileStorage(MemoryStorage):
    """
    Storage backed by a JSON file.

    The file is replaced atomically on every change, via a temporary file in
    the same directory and os.replace.
    """

    def __init__(self, file_path: str):
        self.file_path = file_path
        super().__init__(self._read_file())

    def _read_file(self) -> Dict[str, Any]:
        if not os.path.isfile(self.file_path):
            logger.debug("No cache file at %s, starting empty", self.file_path)
            return {}
        try:
            with open(self.file_path, 'r', encoding='UTF-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Could not read cache file %s: %s", self.file_path, e)
            raise RuntimeError(f'Cache file {self.file_path} is not readable') from e
        if not isinstance(data, dict):
            raise RuntimeError(f'Cache file {self.file_path} does not contain a mapping')
        return data

    def _persist(self):
        with self._lock:
            content = json.dumps(self._data, indent=1, sort_keys=True)
        directory = os.path.dirname(os.path.abspath(self.file_path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
            try:
                with os.fdopen(fd, 'w', encoding='UTF-8') as f:
                    f.write(content)
                os.replace(tmp_path, self.file_path)
            except OSError:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            logger.error("Could not write cache file %s: %s", self.file_path, e)
