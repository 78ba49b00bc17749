"""Pairwise similarity between specialty labels.

Rules are tried in a fixed order and the first that applies wins:

1. exact match after normalization (always trusted)
2. domain conflict (two different non-null domains force 0)
3. curated equivalence groups
4. synonym registry (both labels resolve to the same catalog entry)
5. critical care / intensivist special case
6. substring containment, then Jaccard overlap of non-generic words

Every rule is symmetric in its two arguments, so ``score(a, b)`` and
``score(b, a)`` always agree.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from specialty_match.matching.domains import DomainClassifier
from specialty_match.matching.equivalence import EquivalenceTable
from specialty_match.matching.normalize import normalize, registry_key, word_set
from specialty_match.models.config import MatchingConfig
from specialty_match.models.matching import SimilarityScore

if TYPE_CHECKING:
    from specialty_match.registry.registry import SpecialtyRegistry

EXACT_REASON = "exact match (normalized)"
SYNONYM_REASON = "synonym match"
CRITICAL_CARE_REASON = "critical care specialty match"
NO_MATCH_REASON = "no match"


class SimilarityScorer:
    """Scores label pairs using the configured tables and optional registry.

    Results are cached per normalized pair. The cache depends on registry
    contents, so ``invalidate`` must be called whenever synonyms change; the
    context object subscribes it to the registry's update signal.
    """

    def __init__(
        self,
        config: MatchingConfig,
        registry: SpecialtyRegistry | None = None,
    ) -> None:
        self._config = config
        self._classifier = DomainClassifier(config.domains)
        self._equivalence = EquivalenceTable(config.equivalence_groups)
        self._generic_words = frozenset(w.lower() for w in config.generic_words)
        self._critical_terms = tuple(t.lower() for t in config.critical_care_terms)
        self._registry = registry
        self._cache: dict[tuple[str, str], SimilarityScore] = {}
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def classifier(self) -> DomainClassifier:
        return self._classifier

    @property
    def equivalence(self) -> EquivalenceTable:
        return self._equivalence

    def attach_registry(self, registry: SpecialtyRegistry | None) -> None:
        """Swap the registry used for synonym lookups and drop cached scores."""
        self._registry = registry
        self.invalidate()

    def invalidate(self) -> None:
        """Drop cached scores (called on registry changes)."""
        with self._lock:
            self._generation += 1
            self._cache.clear()

    def cache_size(self) -> int:
        return len(self._cache)

    def score(self, a: str, b: str) -> SimilarityScore:
        """Score two raw specialty labels.

        Args:
            a: First label.
            b: Second label.

        Returns:
            SimilarityScore with a value in [0, 1] and the rule that produced it.
        """
        na = normalize(a)
        nb = normalize(b)
        if not na or not nb:
            return SimilarityScore(value=0.0, reason=NO_MATCH_REASON)

        pair = (na, nb) if na <= nb else (nb, na)
        with self._lock:
            cached = self._cache.get(pair)
            generation = self._generation
        if cached is not None:
            return cached

        result = self._score_normalized(*pair)
        with self._lock:
            # Drop results computed against a registry that changed meanwhile.
            if generation == self._generation:
                self._cache[pair] = result
        return result

    def _score_normalized(self, na: str, nb: str) -> SimilarityScore:
        if na == nb:
            return SimilarityScore(value=1.0, reason=EXACT_REASON)

        conflict = self._classifier.conflict(na, nb)
        if conflict is not None:
            first, second = sorted(conflict)
            return SimilarityScore(
                value=0.0, reason=f"domain mismatch ({first} vs {second})"
            )

        group_score = self._equivalence.match(na, nb)
        if group_score is not None:
            return group_score

        if self._shares_synonym(na, nb):
            return SimilarityScore(value=self._config.scores.synonym, reason=SYNONYM_REASON)

        if self._is_critical_care(na) and self._is_critical_care(nb):
            return SimilarityScore(
                value=self._config.scores.critical_care, reason=CRITICAL_CARE_REASON
            )

        return self._string_similarity(na, nb)

    def _shares_synonym(self, na: str, nb: str) -> bool:
        if self._registry is None:
            return False
        sa = self._registry.resolve(na)
        if sa is None:
            return False
        sb = self._registry.resolve(nb)
        if sb is None:
            return False
        if sa.id == sb.id:
            return True
        keys_a = {registry_key(s) for s in self._registry.all_synonyms_of(sa.id)}
        keys_b = {registry_key(s) for s in self._registry.all_synonyms_of(sb.id)}
        return bool(keys_a & keys_b)

    def _is_critical_care(self, normalized_name: str) -> bool:
        return any(term in normalized_name for term in self._critical_terms)

    def _string_similarity(self, na: str, nb: str) -> SimilarityScore:
        shorter, longer = (na, nb) if len(na) <= len(nb) else (nb, na)
        if len(shorter) < len(longer) and shorter in longer:
            value = self._config.scores.containment
            return SimilarityScore(
                value=value, reason=f"string similarity: {round(value * 100)}%"
            )

        words_a = word_set(na) - self._generic_words
        words_b = word_set(nb) - self._generic_words
        union = words_a | words_b
        if not union:
            return SimilarityScore(value=0.0, reason=NO_MATCH_REASON)
        ratio = len(words_a & words_b) / len(union)
        if ratio <= 0:
            return SimilarityScore(value=0.0, reason=NO_MATCH_REASON)
        return SimilarityScore(
            value=round(ratio, 4), reason=f"string similarity: {round(ratio * 100)}%"
        )
