"""Canonical specialty catalog with synonym resolution.

The registry owns every Specialty and an index from strict registry keys
(see ``registry_key``) to the owning entry. Names, predefined synonyms, and
custom synonyms share one key space: a key belongs to at most one specialty.

Mutations persist the catalog through a RecordStore, emit synonym learning
events through an optional sink, and notify subscribers of the
``synonyms-updated`` signal so that score caches can be invalidated.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from loguru import logger

from specialty_match.errors import (
    DuplicateSynonymError,
    InvalidSynonymError,
    PersistenceError,
    SpecialtyNotFoundError,
)
from specialty_match.matching.normalize import registry_key
from specialty_match.models.learning import LearningEvent, LearningEventType
from specialty_match.models.specialty import (
    Specialty,
    SpecialtyMetadata,
    SpecialtySource,
    SynonymConflict,
    SynonymSet,
)
from specialty_match.reference.loader import slugify
from specialty_match.registry.validation import (
    synonym_variants,
    validate_synonym_text,
)
from specialty_match.storage.base import MemoryRecordStore, RecordStore

CATALOG_KEY = "catalog"
SYNONYMS_UPDATED = "synonyms-updated"

EventSink = Callable[[LearningEvent], None]
Listener = Callable[[], None]


class SpecialtyRegistry:
    """Specialty catalog plus synonym index.

    Args:
        store: Backend the catalog is persisted to. Defaults to memory.
        event_sink: Receives a LearningEvent for every synonym add/remove.
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self._store = store if store is not None else MemoryRecordStore()
        self._event_sink = event_sink
        self._specialties: dict[str, Specialty] = {}
        self._index: dict[str, tuple[str, str]] = {}
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    # -- lifecycle -----------------------------------------------------------

    def set_event_sink(self, event_sink: EventSink | None) -> None:
        self._event_sink = event_sink

    def load(self, specialties: Iterable[Specialty]) -> None:
        """Replace the in-memory catalog.

        Raises:
            DuplicateSynonymError: If two entries share a registry key.
        """
        entries = list(specialties)
        index = _build_index(entries)
        with self._lock:
            self._specialties = {s.id: s for s in entries}
            self._index = index
        self._notify()

    def load_from_store(self, seed: Callable[[], list[Specialty]]) -> None:
        """Load the persisted catalog, seeding it on first use.

        A missing or unreadable catalog falls back to ``seed()``; the seeded
        catalog is written back so later runs see user changes on top of it.
        """
        stored: list[Specialty] = []
        try:
            raw = self._store.get(CATALOG_KEY) or []
            stored = [Specialty.model_validate(item) for item in raw]
        except (sqlite3.Error, OSError, ValueError) as e:
            logger.warning("Could not read specialty catalog, reseeding: {}", e)

        if stored:
            self.load(stored)
            logger.info("Loaded {} specialties from store", len(self._specialties))
            return

        self.load(seed())
        self._save()

    def clear(self) -> None:
        with self._lock:
            self._specialties = {}
            self._index = {}
        self._notify()

    # -- observers -----------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback for the synonyms-updated signal.

        Returns:
            A function that removes the subscription.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        logger.debug("{} -> {} listener(s)", SYNONYMS_UPDATED, len(self._listeners))
        for listener in list(self._listeners):
            listener()

    # -- queries -------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._specialties)

    def specialties(self) -> list[Specialty]:
        return list(self._specialties.values())

    def get(self, specialty_id: str) -> Specialty:
        """Return the specialty with this id.

        Raises:
            SpecialtyNotFoundError: If no such specialty exists.
        """
        specialty = self._specialties.get(specialty_id)
        if specialty is None:
            msg = f"Specialty '{specialty_id}' not found"
            raise SpecialtyNotFoundError(msg)
        return specialty

    def resolve(self, raw: str) -> Specialty | None:
        """Find the specialty whose name or any synonym matches ``raw``."""
        hit = self._index.get(registry_key(raw))
        if hit is None:
            return None
        return self._specialties.get(hit[0])

    def all_synonyms_of(self, specialty_id: str) -> list[str]:
        """Canonical name, then predefined, then custom synonyms."""
        return self.get(specialty_id).all_names()

    def search(self, query: str) -> list[Specialty]:
        """Specialties whose name or a synonym contains the query."""
        needle = registry_key(query)
        if not needle:
            return []
        return [
            s
            for s in self._specialties.values()
            if any(needle in registry_key(text) for text in s.all_names())
        ]

    def find_conflicts(self) -> list[SynonymConflict]:
        """Report every registry key claimed by more than one specialty."""
        owners: dict[str, list[tuple[str, str]]] = {}
        for specialty in self._specialties.values():
            for text, kind in _entries_of(specialty):
                key = registry_key(text)
                claims = owners.setdefault(key, [])
                if all(sid != specialty.id for sid, _ in claims):
                    claims.append((specialty.id, kind))
        return [
            SynonymConflict(
                text=key,
                specialty_ids=[sid for sid, _ in claims],
                conflict_types=[kind for _, kind in claims],
            )
            for key, claims in owners.items()
            if len(claims) > 1
        ]

    def suggest_synonyms(self, specialty_id: str) -> list[str]:
        """Spelling variants of the name not already claimed by any entry."""
        specialty = self.get(specialty_id)
        suggestions: list[str] = []
        for variant in synonym_variants(specialty.name):
            key = registry_key(variant)
            if key and key not in self._index and variant not in suggestions:
                suggestions.append(variant)
        return suggestions

    def export_json(self) -> str:
        """Serialize the catalog as a JSON document."""
        payload = {"specialties": [s.model_dump(mode="json") for s in self.specialties()]}
        return json.dumps(payload, indent=2)

    def import_json(self, data: str) -> int:
        """Replace the catalog with an exported document.

        Returns:
            Number of specialties imported.

        Raises:
            DuplicateSynonymError: If the document violates key uniqueness.
        """
        raw = json.loads(data)
        entries = [Specialty.model_validate(item) for item in raw.get("specialties", [])]
        self.load(entries)
        self._save()
        return len(entries)

    # -- mutations -----------------------------------------------------------

    def add_specialty(
        self,
        name: str,
        category: str | None = None,
        synonyms: Iterable[str] = (),
    ) -> Specialty:
        """Create a user-defined specialty.

        Args:
            name: Canonical display name.
            category: Optional grouping such as 'Medical'.
            synonyms: Initial custom synonyms.

        Returns:
            The new Specialty.

        Raises:
            InvalidSynonymError: If the name or a synonym fails validation.
            DuplicateSynonymError: If any text is already claimed.
        """
        with self._lock:
            clean_name = validate_synonym_text(name, label="Specialty name")
            claimed: dict[str, str] = {}
            self._check_free(clean_name, claimed)
            custom: list[str] = []
            for text in synonyms:
                cleaned = validate_synonym_text(text)
                self._check_free(cleaned, claimed)
                custom.append(cleaned)

            specialty_id = self._unique_id(slugify(clean_name))
            specialty = Specialty(
                id=specialty_id,
                name=clean_name,
                category=category,
                synonyms=SynonymSet(custom=custom),
                metadata=SpecialtyMetadata(source=SpecialtySource.CUSTOM),
            )
            self._specialties[specialty_id] = specialty
            self._index.update(
                {key: (specialty_id, kind) for key, kind in claimed.items()}
            )
            logger.info("Added specialty '{}' ({})", clean_name, specialty_id)
            failure = self._try_save()
        self._notify()
        if failure is not None:
            raise failure
        return specialty

    def delete_specialty(self, specialty_id: str) -> Specialty:
        """Remove a specialty together with all its synonyms."""
        with self._lock:
            specialty = self.get(specialty_id)
            del self._specialties[specialty_id]
            self._index = {k: v for k, v in self._index.items() if v[0] != specialty_id}
            logger.info("Deleted specialty '{}'", specialty.name)
            failure = self._try_save()
        self._notify()
        if failure is not None:
            raise failure
        return specialty

    def add_synonym(self, specialty_id: str, text: str) -> Specialty:
        """Add a custom synonym.

        Args:
            specialty_id: Owning specialty.
            text: Synonym text.

        Returns:
            The updated Specialty.

        Raises:
            SpecialtyNotFoundError: If the specialty does not exist.
            InvalidSynonymError: If the text fails validation.
            DuplicateSynonymError: If the text already belongs to any entry,
                this one included.
        """
        with self._lock:
            specialty = self.get(specialty_id)
            cleaned = validate_synonym_text(text)
            claimed: dict[str, str] = {}
            self._check_free(cleaned, claimed)

            specialty.synonyms.custom.append(cleaned)
            specialty.metadata.last_modified = datetime.now(tz=UTC).isoformat()
            self._index[registry_key(cleaned)] = (specialty_id, "custom")
            logger.info("Added synonym '{}' to '{}'", cleaned, specialty.name)
            failure = self._try_save()
        self._notify()
        self._emit(LearningEventType.SYNONYM_ADD, specialty, cleaned)
        if failure is not None:
            raise failure
        return specialty

    def remove_synonym(self, specialty_id: str, text: str) -> bool:
        """Remove a custom synonym.

        Returns:
            True if a synonym was removed, False if it was not present.

        Raises:
            SpecialtyNotFoundError: If the specialty does not exist.
            InvalidSynonymError: If the text is a predefined synonym.
        """
        key = registry_key(text)
        with self._lock:
            specialty = self.get(specialty_id)
            if any(registry_key(s) == key for s in specialty.synonyms.predefined):
                msg = f"'{text}' is a predefined synonym of '{specialty.name}' and cannot be removed"
                raise InvalidSynonymError(msg)

            kept = [s for s in specialty.synonyms.custom if registry_key(s) != key]
            if len(kept) == len(specialty.synonyms.custom):
                return False
            removed = next(s for s in specialty.synonyms.custom if registry_key(s) == key)
            specialty.synonyms.custom = kept
            specialty.metadata.last_modified = datetime.now(tz=UTC).isoformat()
            self._index.pop(key, None)
            logger.info("Removed synonym '{}' from '{}'", removed, specialty.name)
            failure = self._try_save()
        self._notify()
        self._emit(LearningEventType.SYNONYM_REMOVE, specialty, removed)
        if failure is not None:
            raise failure
        return True

    # -- internals -----------------------------------------------------------

    def _check_free(self, text: str, claimed: dict[str, str]) -> None:
        key = registry_key(text)
        if not key:
            msg = f"'{text}' has no alphanumeric content"
            raise InvalidSynonymError(msg)
        owner = self._index.get(key)
        if owner is not None:
            raise DuplicateSynonymError(text, owner[0], owner[1])
        if key in claimed:
            msg = f"'{text}' is listed more than once"
            raise InvalidSynonymError(msg)
        claimed[key] = "name" if not claimed else "custom"

    def _unique_id(self, base: str) -> str:
        candidate = base or "specialty"
        n = 2
        while candidate in self._specialties:
            candidate = f"{base}-{n}"
            n += 1
        return candidate

    def _save(self) -> None:
        failure = self._try_save()
        if failure is not None:
            raise failure

    def _try_save(self) -> PersistenceError | None:
        """Persist the catalog, returning the error instead of raising it."""
        payload = [s.model_dump(mode="json") for s in self._specialties.values()]
        try:
            self._store.set(CATALOG_KEY, payload)
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to persist specialty catalog: {}", e)
            failure = PersistenceError(f"Specialty catalog was not saved: {e}")
            failure.__cause__ = e
            return failure
        return None

    def _emit(self, event_type: LearningEventType, specialty: Specialty, text: str) -> None:
        if self._event_sink is None:
            return
        action = "added" if event_type == LearningEventType.SYNONYM_ADD else "removed"
        self._event_sink(
            LearningEvent(
                type=event_type,
                source_specialty=specialty.name,
                target_specialty=text,
                confidence=1.0,
                reason=f"Custom synonym {action}",
            )
        )


def _entries_of(specialty: Specialty) -> list[tuple[str, str]]:
    return [
        (specialty.name, "name"),
        *((s, "predefined") for s in specialty.synonyms.predefined),
        *((s, "custom") for s in specialty.synonyms.custom),
    ]


def _build_index(entries: list[Specialty]) -> dict[str, tuple[str, str]]:
    index: dict[str, tuple[str, str]] = {}
    for specialty in entries:
        for text, kind in _entries_of(specialty):
            key = registry_key(text)
            if not key:
                continue
            owner = index.get(key)
            if owner is None:
                index[key] = (specialty.id, kind)
            elif owner[0] != specialty.id:
                raise DuplicateSynonymError(text, owner[0], owner[1])
    return index
