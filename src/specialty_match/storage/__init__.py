"""Pluggable persistence backends."""

from specialty_match.storage.base import MemoryRecordStore, RecordStore
from specialty_match.storage.json_file import JsonFileRecordStore
from specialty_match.storage.sqlite import SqliteRecordStore

__all__ = [
    "JsonFileRecordStore",
    "MemoryRecordStore",
    "RecordStore",
    "SqliteRecordStore",
]
