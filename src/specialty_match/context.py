"""Process-wide matching context.

MatchingContext wires the registry, scorer, engine, learning store, and
mapping stores together over one RecordStore. Nothing is created at import
time: callers construct a context, call ``initialize()``, and pass it where
needed. ``reset()`` drops all in-memory state and subscriptions.

Typical flow::

    ctx = MatchingContext(SqliteRecordStore(db_path), mapping_db=db_path)
    ctx.initialize()
    for suggestion in ctx.suggest(observations):
        ctx.approve(suggestion.source_specialty, suggestion.suggested_matches[0])
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path

from loguru import logger

from specialty_match.errors import SpecialtyMatchError
from specialty_match.learning.store import LearningStore
from specialty_match.mapping.groups import MappedGroupStore
from specialty_match.mapping.repository import SpecialtyMappingStore
from specialty_match.matching.engine import MatchingEngine
from specialty_match.matching.scorer import SimilarityScorer
from specialty_match.matching.vendors import normalize_vendor_name
from specialty_match.models.config import MatchingConfig
from specialty_match.models.learning import LearnedSuggestion, MatchingStats
from specialty_match.models.matching import (
    AutoMapMatch,
    AutoMapSuggestion,
    MappedGroup,
    SpecialtyMapping,
    SuggestionStatus,
)
from specialty_match.models.specialty import Observation, Specialty
from specialty_match.reference.loader import load_matching_config, load_seed_catalog
from specialty_match.registry.registry import SpecialtyRegistry
from specialty_match.storage.base import MemoryRecordStore, RecordStore

DEFAULT_SUGGESTION_TIMEOUT = 30.0


class MatchingContext:
    """Owns every stateful matching component.

    Args:
        store: Backend for catalog, events, rules, and groups. Defaults to memory.
        mapping_db: SQLite file for per-survey SpecialtyMapping rows. When
            None, survey mappings are not persisted.
        data_dir: Override directory for the bundled JSON reference data.
        config: Pre-loaded matching configuration (skips reading data_dir).
        min_confidence: Engine threshold; matches must score above it.
        suggestion_timeout: Seconds allowed per suggestion run (None: unbounded).
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        *,
        mapping_db: Path | None = None,
        data_dir: str | Path | None = None,
        config: MatchingConfig | None = None,
        min_confidence: float = 0.0,
        suggestion_timeout: float | None = DEFAULT_SUGGESTION_TIMEOUT,
    ) -> None:
        self._store = store if store is not None else MemoryRecordStore()
        self._mapping_db = mapping_db
        self._data_dir = data_dir
        self._config = config
        self._min_confidence = min_confidence
        self._timeout = suggestion_timeout

        self._registry: SpecialtyRegistry | None = None
        self._scorer: SimilarityScorer | None = None
        self._engine: MatchingEngine | None = None
        self._learning: LearningStore | None = None
        self._groups: MappedGroupStore | None = None
        self._mappings: SpecialtyMappingStore | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._lock = threading.Lock()

    # -- lifecycle -----------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._engine is not None

    def initialize(self, seed: Callable[[], list[Specialty]] | None = None) -> None:
        """Load configuration and state and wire the components together.

        Args:
            seed: Catalog used when storage holds none. Defaults to the
                bundled seed catalog.
        """
        with self._lock:
            if self._engine is not None:
                return
            config = self._config or load_matching_config(self._data_dir)

            learning = LearningStore(self._store)
            learning.initialize()
            groups = MappedGroupStore(self._store)
            groups.initialize()

            registry = SpecialtyRegistry(self._store, event_sink=learning.record)
            scorer = SimilarityScorer(config, registry)
            self._unsubscribe = registry.subscribe(scorer.invalidate)
            registry.load_from_store(seed or (lambda: load_seed_catalog(self._data_dir)))

            self._config = config
            self._learning = learning
            self._groups = groups
            self._registry = registry
            self._scorer = scorer
            self._engine = MatchingEngine(scorer, learning, self._min_confidence)
            if self._mapping_db is not None:
                self._mappings = SpecialtyMappingStore(self._mapping_db)
        logger.info("Matching context initialized ({} specialties)", len(registry))

    def reset(self) -> None:
        """Drop every component; ``initialize()`` must be called again."""
        with self._lock:
            if self._unsubscribe is not None:
                self._unsubscribe()
            if self._mappings is not None:
                self._mappings.close()
            self._registry = None
            self._scorer = None
            self._engine = None
            self._learning = None
            self._groups = None
            self._mappings = None
            self._unsubscribe = None

    @property
    def registry(self) -> SpecialtyRegistry:
        if self._registry is None:
            raise _not_initialized("the registry")
        return self._registry

    @property
    def scorer(self) -> SimilarityScorer:
        if self._scorer is None:
            raise _not_initialized("the scorer")
        return self._scorer

    @property
    def engine(self) -> MatchingEngine:
        if self._engine is None:
            raise _not_initialized("the engine")
        return self._engine

    @property
    def learning(self) -> LearningStore:
        if self._learning is None:
            raise _not_initialized("the learning store")
        return self._learning

    @property
    def groups(self) -> MappedGroupStore:
        if self._groups is None:
            raise _not_initialized("mapped groups")
        return self._groups

    @property
    def mappings(self) -> SpecialtyMappingStore | None:
        return self._mappings

    # -- operations ----------------------------------------------------------

    def suggest(
        self,
        observations: Iterable[Observation] | Mapping[str, Sequence[Observation]],
        *,
        cancel: threading.Event | None = None,
    ) -> list[AutoMapSuggestion]:
        """Suggest cross-vendor matches for observations not yet grouped.

        Failures (timeout, cancellation, bad input) are logged and produce an
        empty list rather than propagating.
        """
        if isinstance(observations, Mapping):
            by_vendor = observations
        else:
            by_vendor = group_by_vendor(observations)
        try:
            return self.engine.suggest(
                by_vendor,
                self.groups.already_mapped(),
                timeout=self._timeout,
                cancel=cancel,
            )
        except SpecialtyMatchError as e:
            logger.warning("Suggestion run failed, returning no suggestions: {}", e)
            return []

    def canonical_name(self, specialty: str) -> str:
        """Catalog name for a label, or the label itself if unknown."""
        resolved = self.registry.resolve(specialty)
        return resolved.name if resolved is not None else specialty

    def approve(
        self,
        source: Observation,
        match: AutoMapMatch,
        survey_id: str | None = None,
    ) -> MappedGroup:
        """Accept a suggested match.

        Groups the pair, stores a verified mapping for the survey (when a
        survey and mapping database are configured), and records an
        auto_map_approve event. Approving further matches for the same
        source adds them to its group and to its survey mapping.
        """
        existing = self.groups.group_for(source)
        if existing is None:
            group = self.groups.create([source, match.specialty])
        else:
            group = self.groups.extend(existing.id, [match.specialty])
        if survey_id is not None and self._mappings is not None:
            targets = [self.canonical_name(match.specialty.specialty)]
            previous = self._mappings.get(survey_id, source.specialty)
            if previous is not None:
                targets = [*previous.mapped_specialties, *targets]
            self._mappings.save(
                SpecialtyMapping(
                    survey_id=survey_id,
                    source_specialty=source.specialty,
                    mapped_specialties=targets,
                    confidence=1.0,
                    is_verified=True,
                    notes=match.reason,
                )
            )
        match.status = SuggestionStatus.APPROVED
        self.learning.record_auto_map_decision(
            source.specialty,
            match.specialty.specialty,
            approved=True,
            confidence=match.confidence,
            vendor=source.vendor,
        )
        return group

    def reject(self, source: Observation, match: AutoMapMatch) -> None:
        """Decline a suggested match; only an auto_map_reject event is recorded."""
        match.status = SuggestionStatus.REJECTED
        self.learning.record_auto_map_decision(
            source.specialty,
            match.specialty.specialty,
            approved=False,
            confidence=match.confidence,
            vendor=source.vendor,
        )

    def map_manually(
        self, observations: Sequence[Observation], survey_id: str | None = None
    ) -> MappedGroup:
        """Group observations chosen by a user and learn from the choice.

        The first observation is the anchor: one manual_map event is recorded
        from it to each other observation.

        Raises:
            ValueError: If fewer than two observations are given or any is
                already grouped.
        """
        if len(observations) < 2:
            msg = "A manual mapping needs at least two observations"
            raise ValueError(msg)
        group = self.groups.create(observations)
        anchor = observations[0]
        canonical = self.canonical_name(anchor.specialty)
        for obs in observations[1:]:
            if survey_id is not None and self._mappings is not None:
                self._mappings.save(
                    SpecialtyMapping(
                        survey_id=survey_id,
                        source_specialty=obs.specialty,
                        mapped_specialties=[canonical],
                        confidence=1.0,
                        is_verified=True,
                    )
                )
            self.learning.record_manual_mapping(anchor.specialty, obs.specialty, vendor=obs.vendor)
        return group

    def add_synonym(self, specialty_id: str, text: str) -> Specialty:
        return self.registry.add_synonym(specialty_id, text)

    def remove_synonym(self, specialty_id: str, text: str) -> bool:
        return self.registry.remove_synonym(specialty_id, text)

    def suggestions_for(self, specialty: str, vendor: str | None = None) -> list[LearnedSuggestion]:
        return self.learning.suggestions_for(specialty, vendor)

    def stats(self) -> MatchingStats:
        return self.learning.stats(self.groups.groups())

    def unmapped(self, observations: Iterable[Observation]) -> list[Observation]:
        return self.learning.unmapped_specialties(observations, self.groups.groups())


def group_by_vendor(observations: Iterable[Observation]) -> dict[str, list[Observation]]:
    """Bucket observations by canonical vendor name, preserving order."""
    by_vendor: dict[str, list[Observation]] = {}
    for obs in observations:
        by_vendor.setdefault(normalize_vendor_name(obs.vendor), []).append(obs)
    return by_vendor


def _not_initialized(name: str) -> RuntimeError:
    msg = f"MatchingContext.initialize() must be called before using {name}"
    return RuntimeError(msg)
