"""Cross-vendor mapping suggestions.

Given observations grouped by vendor, every observation is scored against
every observation of every other vendor. Observations already resolved (in
the exclusion set) are skipped as sources and as targets. Each pair is offered
once: an observation already proposed as a source or as a target is not
offered again as a source, and a proposed source is never a later target.
Learned rules bias
the result: a pair humans have approved more often than rejected is lifted
to at least the rule confidence, a pair rejected more often than approved is
halved.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

from loguru import logger

from specialty_match.errors import (
    MalformedObservationError,
    SuggestionCancelledError,
    SuggestionTimeoutError,
)
from specialty_match.matching.scorer import SimilarityScorer
from specialty_match.matching.vendors import normalize_vendor_name
from specialty_match.models.learning import MatchingRule
from specialty_match.models.matching import AutoMapMatch, AutoMapSuggestion
from specialty_match.models.specialty import Observation

if TYPE_CHECKING:
    from specialty_match.learning.store import LearningStore

REJECTION_PENALTY = 0.5


def validate_observation(observation: Observation) -> Observation:
    """Reject observations with a blank specialty.

    Raises:
        MalformedObservationError: If the specialty is empty or whitespace.
    """
    if not observation.specialty.strip():
        msg = f"Observation from vendor '{observation.vendor}' has an empty specialty"
        raise MalformedObservationError(msg)
    return observation


class MatchingEngine:
    """Proposes cross-vendor matches using a SimilarityScorer.

    Args:
        scorer: Pairwise scorer.
        learning: Optional learning store whose rules bias confidence.
        min_confidence: Matches must score strictly above this value.
    """

    def __init__(
        self,
        scorer: SimilarityScorer,
        learning: LearningStore | None = None,
        min_confidence: float = 0.0,
    ) -> None:
        self._scorer = scorer
        self._learning = learning
        self._min_confidence = min_confidence

    @property
    def scorer(self) -> SimilarityScorer:
        return self._scorer

    def suggest(
        self,
        specialties_by_vendor: Mapping[str, Sequence[Observation]],
        already_mapped: Iterable[str] = (),
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> list[AutoMapSuggestion]:
        """Suggest matches for every unmapped observation.

        Args:
            specialties_by_vendor: Observations keyed by vendor.
            already_mapped: Keys of the form 'specialty:vendor' to exclude.
            timeout: Seconds allowed before giving up.
            cancel: Set by the caller to abort the run.

        Returns:
            One suggestion per source with at least one match, matches sorted
            by confidence descending. Sources without matches are omitted, as
            are sources already proposed as the target of an earlier source.

        Raises:
            SuggestionTimeoutError: If ``timeout`` elapsed.
            SuggestionCancelledError: If ``cancel`` was set.
        """
        excluded = {key.strip().lower() for key in already_mapped}
        candidates = self._collect(specialties_by_vendor, excluded)
        rules = self._rule_index()
        deadline = time.monotonic() + timeout if timeout is not None else None

        suggestions: list[AutoMapSuggestion] = []
        proposed: set[str] = set()
        targeted: set[str] = set()
        for source_vendor, source in candidates:
            if source.key in proposed or source.key in targeted:
                continue
            matches: list[AutoMapMatch] = []
            for target_vendor, target in candidates:
                if target_vendor == source_vendor or target.key in proposed:
                    continue
                _check_budget(deadline, cancel)
                confidence, reason = self._weigh(source, target, rules)
                if confidence > self._min_confidence:
                    matches.append(
                        AutoMapMatch(specialty=target, confidence=confidence, reason=reason)
                    )
            if not matches:
                continue
            matches.sort(
                key=lambda m: (-m.confidence, m.specialty.vendor, m.specialty.specialty)
            )
            proposed.add(source.key)
            targeted.update(m.specialty.key for m in matches)
            suggestions.append(
                AutoMapSuggestion(source_specialty=source, suggested_matches=matches)
            )

        logger.info(
            "Suggested matches for {} of {} observation(s)",
            len(suggestions),
            len(candidates),
        )
        return suggestions

    def _collect(
        self,
        specialties_by_vendor: Mapping[str, Sequence[Observation]],
        excluded: set[str],
    ) -> list[tuple[str, Observation]]:
        seen: set[tuple[str, str]] = set()
        candidates: list[tuple[str, Observation]] = []
        for vendor, observations in specialties_by_vendor.items():
            vendor_id = normalize_vendor_name(vendor)
            for obs in observations:
                try:
                    validate_observation(obs)
                except MalformedObservationError as e:
                    logger.warning("Skipping observation: {}", e)
                    continue
                key = obs.key
                if key in excluded or (vendor_id, key) in seen:
                    continue
                seen.add((vendor_id, key))
                candidates.append((vendor_id, obs))
        return candidates

    def _rule_index(self) -> dict[tuple[str, str], MatchingRule]:
        if self._learning is None:
            return {}
        index: dict[tuple[str, str], MatchingRule] = {}
        for rule in self._learning.get_rules():
            if not rule.is_active:
                continue
            a = rule.source.strip().lower()
            b = rule.target.strip().lower()
            index.setdefault((a, b), rule)
            index.setdefault((b, a), rule)
        return index

    def _weigh(
        self,
        source: Observation,
        target: Observation,
        rules: dict[tuple[str, str], MatchingRule],
    ) -> tuple[float, str]:
        result = self._scorer.score(source.specialty, target.specialty)
        confidence, reason = result.value, result.reason

        rule = rules.get((source.specialty.strip().lower(), target.specialty.strip().lower()))
        if rule is None:
            return confidence, reason
        if rule.success_count > rule.failure_count and rule.confidence > confidence:
            return rule.confidence, (
                f"learned rule: {rule.pattern} ({rule.success_count} successful uses)"
            )
        if rule.failure_count > rule.success_count and confidence > 0:
            return round(confidence * REJECTION_PENALTY, 4), f"{reason} (previously rejected)"
        return confidence, reason


def _check_budget(deadline: float | None, cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        msg = "Suggestion generation cancelled"
        raise SuggestionCancelledError(msg)
    if deadline is not None and time.monotonic() > deadline:
        msg = "Suggestion generation timed out"
        raise SuggestionTimeoutError(msg)
