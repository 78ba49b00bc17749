"""Tests for SimilarityScorer rule ordering and caching."""

from __future__ import annotations

import pytest

from specialty_match.matching.scorer import (
    CRITICAL_CARE_REASON,
    EXACT_REASON,
    NO_MATCH_REASON,
    SYNONYM_REASON,
    SimilarityScorer,
)
from specialty_match.models.config import MatchingConfig
from specialty_match.reference.loader import load_matching_config, load_seed_catalog
from specialty_match.registry.registry import SpecialtyRegistry


@pytest.fixture(scope="module")
def config() -> MatchingConfig:
    return load_matching_config()


@pytest.fixture
def scorer(config: MatchingConfig) -> SimilarityScorer:
    return SimilarityScorer(config)


@pytest.fixture
def registry() -> SpecialtyRegistry:
    reg = SpecialtyRegistry()
    reg.load(load_seed_catalog())
    return reg


class TestRuleOrder:
    """Each rule fires for the pairs it is meant for."""

    def test_exact_after_normalization(self, scorer: SimilarityScorer) -> None:
        result = scorer.score("Cardiology", "  cardiology ")
        assert result.value == 1.0
        assert result.reason == EXACT_REASON

    def test_domain_conflict_forces_zero(self, scorer: SimilarityScorer) -> None:
        result = scorer.score("Cardiac Surgery", "Orthopedic Surgery")
        assert result.value == 0.0
        assert result.reason == "domain mismatch (CARDIAC vs ORTHOPEDIC)"

    def test_domain_conflict_beats_shared_words(self, scorer: SimilarityScorer) -> None:
        assert scorer.score("Cardiology Surgery", "Neurosurgery Surgery").value == 0.0

    def test_equivalence_group(self, scorer: SimilarityScorer) -> None:
        result = scorer.score("Family Medicine", "Family Practice")
        assert result.value == 1.0
        assert result.reason == "Family Medicine equivalence"

    def test_equivalence_normalizes_separators(self, scorer: SimilarityScorer) -> None:
        result = scorer.score(
            "Surgery(Cardiothoracic/Cardiovascular)", "Cardiothoracic Surgery"
        )
        assert result.value == 1.0
        assert result.reason == "Cardiothoracic Surgery equivalence"

    def test_critical_care_special_case(self, scorer: SimilarityScorer) -> None:
        result = scorer.score("Pulmonary Critical Care", "Intensivist Physician")
        assert result.value == 0.9
        assert result.reason == CRITICAL_CARE_REASON

    def test_token_containment(self, scorer: SimilarityScorer) -> None:
        result = scorer.score("Dermatology", "Dermatology Mohs Surgery")
        assert result.value == 0.9
        assert result.reason == "string similarity: 90%"

    def test_substring_containment(self, scorer: SimilarityScorer) -> None:
        result = scorer.score("Pediatric", "Pediatrics")
        assert result.value == 0.9
        assert result.reason == "string similarity: 90%"

    def test_containment_blocked_across_domains(self, scorer: SimilarityScorer) -> None:
        result = scorer.score("Neurology", "Neurology Cardiology")
        assert result.value == 0.0
        assert result.reason.startswith("domain mismatch")

    def test_jaccard_ignores_generic_words(self, scorer: SimilarityScorer) -> None:
        result = scorer.score("Pediatric Gastroenterology", "Adult Gastroenterology")
        assert result.value == pytest.approx(0.3333)
        assert result.reason == "string similarity: 33%"

    def test_blank_is_no_match(self, scorer: SimilarityScorer) -> None:
        result = scorer.score("", "Cardiology")
        assert result.value == 0.0
        assert result.reason == NO_MATCH_REASON


class TestSymmetry:
    """score(a, b) == score(b, a) for every rule path."""

    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ("Cardiac Surgery", "Orthopedic Surgery"),
            ("Family Medicine", "Family Practice"),
            ("Pulmonary Critical Care", "Intensivist Physician"),
            ("Dermatology", "Dermatology Mohs Surgery"),
            ("Pediatric Gastroenterology", "Adult Gastroenterology"),
            ("Cardiovascular Disease", "Cardiology"),
        ],
    )
    def test_symmetric(
        self, config: MatchingConfig, registry: SpecialtyRegistry, a: str, b: str
    ) -> None:
        forward = SimilarityScorer(config, registry).score(a, b)
        backward = SimilarityScorer(config, registry).score(b, a)
        assert forward == backward


class TestRegistryIntegration:
    """Synonym lookups and cache invalidation."""

    def test_synonym_match(self, config: MatchingConfig, registry: SpecialtyRegistry) -> None:
        scorer = SimilarityScorer(config, registry)
        result = scorer.score("Cardiovascular Disease", "Cardiology")
        assert result.value == 0.95
        assert result.reason == SYNONYM_REASON

    def test_without_registry_no_synonym(self, scorer: SimilarityScorer) -> None:
        assert scorer.score("Cardiovascular Disease", "Cardiology").reason != SYNONYM_REASON

    def test_new_synonym_visible_after_invalidate(
        self, config: MatchingConfig, registry: SpecialtyRegistry
    ) -> None:
        scorer = SimilarityScorer(config, registry)
        registry.subscribe(scorer.invalidate)

        assert scorer.score("Heart Medicine", "Cardiology").value == 0.0
        assert scorer.cache_size() == 1

        registry.add_synonym("cardiology", "Heart Medicine")

        assert scorer.cache_size() == 0
        result = scorer.score("Heart Medicine", "Cardiology")
        assert result.value == 0.95
        assert result.reason == SYNONYM_REASON

    def test_invalidate_during_scoring_not_cached(
        self,
        config: MatchingConfig,
        registry: SpecialtyRegistry,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        scorer = SimilarityScorer(config, registry)
        resolve = registry.resolve

        def resolve_then_invalidate(raw: str):
            found = resolve(raw)
            scorer.invalidate()
            return found

        monkeypatch.setattr(registry, "resolve", resolve_then_invalidate)
        result = scorer.score("Cardiovascular Disease", "Cardiology")

        assert result.value == 0.95
        assert scorer.cache_size() == 0

    def test_attach_registry_clears_cache(
        self, scorer: SimilarityScorer, registry: SpecialtyRegistry
    ) -> None:
        scorer.score("Cardiovascular Disease", "Cardiology")
        scorer.attach_registry(registry)
        assert scorer.cache_size() == 0
        assert scorer.score("Cardiovascular Disease", "Cardiology").value == 0.95


class TestClassifier:
    """Tests for the domain classifier exposed by the scorer."""

    def test_first_domain_wins(self, scorer: SimilarityScorer) -> None:
        assert scorer.classifier.classify("cardiothoracic surgery") == "CARDIAC"
        assert scorer.classifier.classify("orthopaedic surgery") == "ORTHOPEDIC"
        assert scorer.classifier.classify("dermatology") is None

    def test_no_conflict_when_one_side_untagged(self, scorer: SimilarityScorer) -> None:
        assert scorer.classifier.conflict("cardiology", "dermatology") is None
