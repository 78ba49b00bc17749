"""Tests for SpecialtyRegistry lookups, mutations, and persistence."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from specialty_match.errors import (
    DuplicateSynonymError,
    InvalidSynonymError,
    PersistenceError,
    SpecialtyNotFoundError,
)
from specialty_match.matching.scorer import SimilarityScorer
from specialty_match.models.learning import LearningEvent, LearningEventType
from specialty_match.models.specialty import Specialty, SpecialtySource, SynonymSet
from specialty_match.reference.loader import load_matching_config, load_seed_catalog
from specialty_match.registry.registry import CATALOG_KEY, SpecialtyRegistry
from specialty_match.storage.base import MemoryRecordStore
from specialty_match.storage.sqlite import SqliteRecordStore


class FailingWriteStore(MemoryRecordStore):
    """Memory store whose writes always fail."""

    def set(self, key: str, value: Any) -> None:
        raise OSError("disk full")


@pytest.fixture
def events() -> list[LearningEvent]:
    return []


@pytest.fixture
def registry(events: list[LearningEvent]) -> SpecialtyRegistry:
    reg = SpecialtyRegistry(MemoryRecordStore(), event_sink=events.append)
    reg.load(load_seed_catalog())
    return reg


class TestLookups:
    """Tests for resolve, get, and search."""

    def test_resolve_canonical_name(self, registry: SpecialtyRegistry) -> None:
        resolved = registry.resolve("cardiology")
        assert resolved is not None
        assert resolved.id == "cardiology"

    def test_resolve_synonym_ignores_punctuation(self, registry: SpecialtyRegistry) -> None:
        resolved = registry.resolve("allergy and immunology")
        assert resolved is not None
        assert resolved.id == "allergy-immunology"

    def test_resolve_unknown(self, registry: SpecialtyRegistry) -> None:
        assert registry.resolve("Space Medicine") is None

    def test_get_unknown_raises(self, registry: SpecialtyRegistry) -> None:
        with pytest.raises(SpecialtyNotFoundError):
            registry.get("no-such-id")

    def test_not_found_is_key_error(self, registry: SpecialtyRegistry) -> None:
        with pytest.raises(KeyError):
            registry.get("no-such-id")

    def test_all_synonyms_order(self, registry: SpecialtyRegistry) -> None:
        names = registry.all_synonyms_of("cardiology")
        assert names[0] == "Cardiology"
        assert "Cardiovascular Disease" in names

    def test_search_by_synonym_fragment(self, registry: SpecialtyRegistry) -> None:
        ids = {s.id for s in registry.search("heart")}
        assert "cardiology" in ids
        assert "cardiothoracic-surgery" in ids

    def test_search_blank(self, registry: SpecialtyRegistry) -> None:
        assert registry.search("  ") == []

    def test_seed_has_no_conflicts(self, registry: SpecialtyRegistry) -> None:
        assert registry.find_conflicts() == []

    def test_seed_marked_predefined(self, registry: SpecialtyRegistry) -> None:
        cardiology = registry.get("cardiology")
        assert cardiology.metadata.source == SpecialtySource.PREDEFINED
        assert cardiology.synonyms.custom == []


class TestLoad:
    """Tests for loading catalogs."""

    def test_duplicate_across_entries_rejected(self) -> None:
        reg = SpecialtyRegistry()
        entries = [
            Specialty(id="a", name="Cardiology"),
            Specialty(id="b", name="Heart", synonyms=SynonymSet(predefined=["cardiology"])),
        ]
        with pytest.raises(DuplicateSynonymError) as exc_info:
            reg.load(entries)
        assert exc_info.value.existing_id == "a"
        assert exc_info.value.conflict_type == "name"

    def test_listeners_notified_on_load(self) -> None:
        reg = SpecialtyRegistry()
        calls: list[int] = []
        reg.subscribe(lambda: calls.append(1))
        reg.load([Specialty(id="a", name="Cardiology")])
        assert calls == [1]

    def test_unsubscribe(self) -> None:
        reg = SpecialtyRegistry()
        calls: list[int] = []
        unsubscribe = reg.subscribe(lambda: calls.append(1))
        unsubscribe()
        reg.load([Specialty(id="a", name="Cardiology")])
        assert calls == []


class TestAddSynonym:
    """Tests for add_synonym."""

    def test_add_and_resolve(self, registry: SpecialtyRegistry) -> None:
        updated = registry.add_synonym("cardiology", "  Heart   Medicine ")
        assert updated.synonyms.custom == ["Heart Medicine"]
        resolved = registry.resolve("heart medicine")
        assert resolved is not None
        assert resolved.id == "cardiology"

    def test_duplicate_in_other_specialty_rejected(self, registry: SpecialtyRegistry) -> None:
        registry.add_synonym("cardiology", "Heart Medicine")
        with pytest.raises(DuplicateSynonymError) as exc_info:
            registry.add_synonym("internal-medicine", "Heart Medicine")
        assert exc_info.value.existing_id == "cardiology"
        assert exc_info.value.conflict_type == "custom"
        assert "already exists as a custom synonym of 'cardiology'" in str(exc_info.value)
        assert registry.get("internal-medicine").synonyms.custom == []

    def test_duplicate_in_same_specialty_rejected(self, registry: SpecialtyRegistry) -> None:
        registry.add_synonym("cardiology", "Heart Medicine")
        with pytest.raises(DuplicateSynonymError):
            registry.add_synonym("cardiology", "heart medicine")

    def test_collides_with_canonical_name(self, registry: SpecialtyRegistry) -> None:
        with pytest.raises(DuplicateSynonymError) as exc_info:
            registry.add_synonym("family-medicine", "Cardiology")
        assert exc_info.value.conflict_type == "name"
        assert str(exc_info.value) == "'Cardiology' already exists as the name of 'cardiology'"

    def test_collides_with_punctuation_variant(self, registry: SpecialtyRegistry) -> None:
        with pytest.raises(DuplicateSynonymError):
            registry.add_synonym("internal-medicine", "Allergy and/or Immunology")

    @pytest.mark.parametrize("text", ["x", "Unknown", "Cardio@logy", "a" * 101])
    def test_invalid_text_rejected(self, registry: SpecialtyRegistry, text: str) -> None:
        with pytest.raises(InvalidSynonymError):
            registry.add_synonym("cardiology", text)

    def test_unknown_specialty(self, registry: SpecialtyRegistry) -> None:
        with pytest.raises(SpecialtyNotFoundError):
            registry.add_synonym("no-such-id", "Heart Medicine")

    def test_emits_learning_event(
        self, registry: SpecialtyRegistry, events: list[LearningEvent]
    ) -> None:
        registry.add_synonym("cardiology", "Heart Medicine")
        assert len(events) == 1
        assert events[0].type == LearningEventType.SYNONYM_ADD
        assert events[0].source_specialty == "Cardiology"
        assert events[0].target_specialty == "Heart Medicine"

    def test_notifies_listeners(self, registry: SpecialtyRegistry) -> None:
        calls: list[int] = []
        registry.subscribe(lambda: calls.append(1))
        registry.add_synonym("cardiology", "Heart Medicine")
        assert calls == [1]

    def test_failed_duplicate_does_not_notify(self, registry: SpecialtyRegistry) -> None:
        calls: list[int] = []
        registry.subscribe(lambda: calls.append(1))
        with pytest.raises(DuplicateSynonymError):
            registry.add_synonym("family-medicine", "Cardiology")
        assert calls == []


class TestRemoveSynonym:
    """Tests for remove_synonym."""

    def test_remove_custom(
        self, registry: SpecialtyRegistry, events: list[LearningEvent]
    ) -> None:
        registry.add_synonym("cardiology", "Heart Medicine")
        assert registry.remove_synonym("cardiology", "heart medicine") is True
        assert registry.resolve("Heart Medicine") is None
        assert events[-1].type == LearningEventType.SYNONYM_REMOVE
        assert events[-1].target_specialty == "Heart Medicine"

    def test_remove_absent_returns_false(self, registry: SpecialtyRegistry) -> None:
        assert registry.remove_synonym("cardiology", "Heart Medicine") is False

    def test_predefined_cannot_be_removed(self, registry: SpecialtyRegistry) -> None:
        with pytest.raises(InvalidSynonymError):
            registry.remove_synonym("cardiology", "Cardiovascular Disease")
        assert registry.resolve("Cardiovascular Disease") is not None

    def test_removed_text_can_be_reused(self, registry: SpecialtyRegistry) -> None:
        registry.add_synonym("cardiology", "Heart Medicine")
        registry.remove_synonym("cardiology", "Heart Medicine")
        registry.add_synonym("internal-medicine", "Heart Medicine")
        resolved = registry.resolve("Heart Medicine")
        assert resolved is not None
        assert resolved.id == "internal-medicine"


class TestSpecialties:
    """Tests for adding and deleting catalog entries."""

    def test_add_specialty(self, registry: SpecialtyRegistry) -> None:
        created = registry.add_specialty(
            "Sleep Medicine", category="Medical", synonyms=["Sleep Disorders"]
        )
        assert created.id == "sleep-medicine"
        assert created.metadata.source == SpecialtySource.CUSTOM
        resolved = registry.resolve("sleep disorders")
        assert resolved is not None
        assert resolved.id == "sleep-medicine"

    def test_add_specialty_name_taken(self, registry: SpecialtyRegistry) -> None:
        with pytest.raises(DuplicateSynonymError):
            registry.add_specialty("Cardiovascular Disease")

    def test_add_specialty_repeated_synonym(self, registry: SpecialtyRegistry) -> None:
        with pytest.raises(InvalidSynonymError):
            registry.add_specialty("Sleep Medicine", synonyms=["Sleep Care", "sleep care"])

    def test_delete_specialty_frees_synonyms(self, registry: SpecialtyRegistry) -> None:
        removed = registry.delete_specialty("cardiology")
        assert removed.name == "Cardiology"
        assert registry.resolve("Cardiovascular Disease") is None
        with pytest.raises(SpecialtyNotFoundError):
            registry.get("cardiology")

    def test_suggest_synonyms_skips_claimed(self, registry: SpecialtyRegistry) -> None:
        suggestions = registry.suggest_synonyms("allergy-immunology")
        assert "Allergy & Immunology" not in suggestions


class TestPersistence:
    """Tests for store-backed loading and saving."""

    def test_first_load_seeds_store(self) -> None:
        store = MemoryRecordStore()
        reg = SpecialtyRegistry(store)
        reg.load_from_store(load_seed_catalog)
        assert len(store.get(CATALOG_KEY)) == len(reg)

    def test_changes_survive_reload(self, tmp_path: Path) -> None:
        store = SqliteRecordStore(tmp_path / "catalog.db")
        reg = SpecialtyRegistry(store)
        reg.load_from_store(load_seed_catalog)
        reg.add_synonym("cardiology", "Heart Medicine")

        reloaded = SpecialtyRegistry(store)
        reloaded.load_from_store(load_seed_catalog)
        resolved = reloaded.resolve("Heart Medicine")
        assert resolved is not None
        assert resolved.id == "cardiology"
        store.close()

    def test_corrupt_catalog_reseeds(self) -> None:
        store = MemoryRecordStore()
        store.set(CATALOG_KEY, [{"bogus": True}])
        reg = SpecialtyRegistry(store)
        reg.load_from_store(load_seed_catalog)
        assert len(reg) == len(load_seed_catalog())

    def test_failed_write_raises_persistence_error(self) -> None:
        reg = SpecialtyRegistry(FailingWriteStore())
        reg.load(load_seed_catalog())
        with pytest.raises(PersistenceError):
            reg.add_synonym("cardiology", "Heart Medicine")

    def test_failed_write_still_notifies_and_records(self) -> None:
        events: list[LearningEvent] = []
        reg = SpecialtyRegistry(FailingWriteStore(), event_sink=events.append)
        reg.load(load_seed_catalog())
        scorer = SimilarityScorer(load_matching_config(), reg)
        reg.subscribe(scorer.invalidate)
        assert scorer.score("Heart Medicine", "Cardiology").value < 0.95

        with pytest.raises(PersistenceError):
            reg.add_synonym("cardiology", "Heart Medicine")

        assert scorer.score("Heart Medicine", "Cardiology").value == 0.95
        assert [e.type for e in events] == [LearningEventType.SYNONYM_ADD]

        with pytest.raises(PersistenceError):
            reg.remove_synonym("cardiology", "Heart Medicine")

        assert reg.resolve("Heart Medicine") is None
        assert scorer.score("Heart Medicine", "Cardiology").value < 0.95
        assert events[-1].type == LearningEventType.SYNONYM_REMOVE

    def test_export_import(self, registry: SpecialtyRegistry) -> None:
        registry.add_synonym("cardiology", "Heart Medicine")
        exported = registry.export_json()

        other = SpecialtyRegistry()
        count = other.import_json(exported)
        assert count == len(registry)
        assert other.get("cardiology").synonyms.custom == ["Heart Medicine"]
