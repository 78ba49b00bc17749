"""Storage interface used by the registry, learning store, and mapped groups.

Two kinds of data are kept: keyed documents (catalog, rules, groups) that are
replaced wholesale with ``set``, and append-only logs (learning events) that
only ever grow with ``append``. No backend exposes an update or delete for
log records.
"""

from __future__ import annotations

import copy
import sqlite3
from abc import ABC, abstractmethod
from typing import Any

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

# Transient write failures: a locked SQLite database or a busy file.
write_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(min=0.1, max=2),
    retry=retry_if_exception_type((sqlite3.OperationalError, OSError)),
    reraise=True,
)


class RecordStore(ABC):
    """Swappable key-value + append-log backend."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the JSON-compatible value stored at key, or default."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Replace the value stored at key."""

    @abstractmethod
    def append(self, key: str, record: dict[str, Any]) -> None:
        """Append one record to the log named key."""

    @abstractmethod
    def read_log(self, key: str) -> list[dict[str, Any]]:
        """Return every record of the log named key, oldest first."""

    def close(self) -> None:
        """Release any underlying resources."""


class MemoryRecordStore(RecordStore):
    """In-process store; values are deep-copied in and out."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._logs: dict[str, list[dict[str, Any]]] = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._values:
            return default
        return copy.deepcopy(self._values[key])

    def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)

    def append(self, key: str, record: dict[str, Any]) -> None:
        self._logs.setdefault(key, []).append(copy.deepcopy(record))

    def read_log(self, key: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._logs.get(key, []))
