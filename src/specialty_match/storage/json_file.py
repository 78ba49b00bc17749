"""Directory-of-JSON-files RecordStore.

Each document key is one ``<key>.json`` file, written via a temporary file
and rename. Each log is a ``<key>.jsonl`` file opened in append mode.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from specialty_match.storage.base import RecordStore, write_retry

_SAFE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]+")


class JsonFileRecordStore(RecordStore):
    """Stores documents and logs as files under a root directory."""

    def __init__(self, root: Path) -> None:
        root.mkdir(parents=True, exist_ok=True)
        self._root = root

    def _path(self, key: str, suffix: str) -> Path:
        return self._root / f"{_SAFE_KEY_RE.sub('_', key)}{suffix}"

    def get(self, key: str, default: Any = None) -> Any:
        path = self._path(key, ".json")
        if not path.exists():
            return default
        return json.loads(path.read_text())

    @write_retry
    def set(self, key: str, value: Any) -> None:
        path = self._path(key, ".json")
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(value, indent=2))
        tmp.replace(path)

    @write_retry
    def append(self, key: str, record: dict[str, Any]) -> None:
        with open(self._path(key, ".jsonl"), "a") as f:
            f.write(json.dumps(record) + "\n")

    def read_log(self, key: str) -> list[dict[str, Any]]:
        path = self._path(key, ".jsonl")
        if not path.exists():
            return []
        with open(path) as f:
            return [json.loads(line) for line in f if line.strip()]
