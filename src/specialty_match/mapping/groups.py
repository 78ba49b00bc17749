"""Persisted clusters of cross-vendor observations.

Mapped groups are the single source of truth for "already resolved": the
matching engine's exclusion set is derived from them.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterable

from loguru import logger

from specialty_match.errors import PersistenceError
from specialty_match.models.matching import MappedGroup
from specialty_match.models.specialty import Observation
from specialty_match.storage.base import MemoryRecordStore, RecordStore

GROUPS_KEY = "mapped_groups"


class MappedGroupStore:
    """Mapped groups kept in memory and mirrored to a RecordStore."""

    def __init__(self, store: RecordStore | None = None) -> None:
        self._store = store if store is not None else MemoryRecordStore()
        self._groups: dict[str, MappedGroup] = {}
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Load groups from storage; unreadable data starts empty."""
        try:
            raw = self._store.get(GROUPS_KEY) or []
            groups = [MappedGroup.model_validate(item) for item in raw]
        except (sqlite3.Error, OSError, ValueError) as e:
            logger.warning("Could not read mapped groups, starting empty: {}", e)
            groups = []
        with self._lock:
            self._groups = {g.id: g for g in groups}

    def reset(self) -> None:
        with self._lock:
            self._groups = {}

    def groups(self) -> list[MappedGroup]:
        return list(self._groups.values())

    def get(self, group_id: str) -> MappedGroup | None:
        return self._groups.get(group_id)

    def create(self, observations: Iterable[Observation]) -> MappedGroup:
        """Persist a new group.

        Raises:
            ValueError: If an observation already belongs to another group.
            PersistenceError: If the groups could not be saved.
        """
        members = list(observations)
        with self._lock:
            taken = self._mapped_keys()
            clashes = [obs.key for obs in members if obs.key in taken]
            if clashes:
                msg = f"Already mapped: {', '.join(clashes)}"
                raise ValueError(msg)
            group = MappedGroup(specialties=members)
            self._groups[group.id] = group
            self._save()
        logger.info(
            "Created mapped group {} with {} observation(s)", group.id, len(members)
        )
        return group

    def group_for(self, observation: Observation) -> MappedGroup | None:
        """Return the group containing ``observation``, if any."""
        key = observation.key
        for group in self._groups.values():
            if any(obs.key == key for obs in group.specialties):
                return group
        return None

    def extend(self, group_id: str, observations: Iterable[Observation]) -> MappedGroup:
        """Add observations to an existing group.

        Members already in the group are ignored.

        Raises:
            KeyError: If the group does not exist.
            ValueError: If an observation belongs to a different group.
            PersistenceError: If the groups could not be saved.
        """
        with self._lock:
            group = self._groups.get(group_id)
            if group is None:
                raise KeyError(group_id)
            own = {obs.key for obs in group.specialties}
            added = [obs for obs in observations if obs.key not in own]
            taken = self._mapped_keys() - own
            clashes = [obs.key for obs in added if obs.key in taken]
            if clashes:
                msg = f"Already mapped: {', '.join(clashes)}"
                raise ValueError(msg)
            group = MappedGroup(
                id=group.id,
                created_at=group.created_at,
                specialties=[*group.specialties, *added],
            )
            self._groups[group.id] = group
            self._save()
        logger.info("Added {} observation(s) to mapped group {}", len(added), group.id)
        return group

    def delete(self, group_id: str) -> bool:
        """Remove a group, freeing its observations for new suggestions."""
        with self._lock:
            if self._groups.pop(group_id, None) is None:
                return False
            self._save()
        return True

    def already_mapped(self) -> set[str]:
        """Keys ('specialty:vendor', lower-case) of every grouped observation."""
        return self._mapped_keys()

    def _mapped_keys(self) -> set[str]:
        return {obs.key for g in self._groups.values() for obs in g.specialties}

    def _save(self) -> None:
        payload = [g.model_dump(mode="json") for g in self._groups.values()]
        try:
            self._store.set(GROUPS_KEY, payload)
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to persist mapped groups: {}", e)
            msg = f"Mapped groups were not saved: {e}"
            raise PersistenceError(msg) from e
