"""Learning event log and derived matching rules.

Every manual mapping, auto-map approval or rejection, and synonym change is
appended to an immutable event log. Rules are derived from the log: each
event is folded into the rule set exactly once, tracked by a watermark that
is persisted with the rules.

Rule policy:
    - approvals (manual_map, auto_map_approve) add a success, raise the rule
      confidence by 0.1 (capped at 1.0), and append to a bounded example list
    - rejections (auto_map_reject) add a failure and leave confidence alone;
      a rejection with no rule yet creates a zero-success rule
    - rules with zero successes are pruned once older than 24 hours

Reads that fail degrade to an empty state. Writes that fail (after the
storage backend's own retries) raise PersistenceError; the in-memory state
keeps the change so the running process stays consistent.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from loguru import logger

from specialty_match.errors import PersistenceError
from specialty_match.learning.patterns import analyze_patterns, match_type_for
from specialty_match.learning.stats import compute_stats
from specialty_match.models.learning import (
    LearnedSuggestion,
    LearningEvent,
    LearningEventType,
    MatchingRule,
    MatchingStats,
    RuleExample,
)
from specialty_match.models.matching import MappedGroup
from specialty_match.models.specialty import Observation
from specialty_match.storage.base import MemoryRecordStore, RecordStore

EVENTS_LOG = "learning_events"
RULES_KEY = "matching_rules"

MAX_RULE_EXAMPLES = 10
CONFIDENCE_STEP = 0.1
STALE_RULE_AGE = timedelta(hours=24)

PATTERN_WORD_THRESHOLD = 0.7
ACRONYM_CONFIDENCE = 0.8
AFFIX_CONFIDENCE = 0.7

_APPROVALS = (LearningEventType.MANUAL_MAP, LearningEventType.AUTO_MAP_APPROVE)
_WRITE_ERRORS = (sqlite3.Error, OSError)
_READ_ERRORS = (sqlite3.Error, OSError, ValueError)


def _same(a: str, b: str) -> bool:
    return a.strip().lower() == b.strip().lower()


def _parse_ts(value: str | None, fallback: datetime) -> datetime:
    if not value:
        return fallback
    try:
        ts = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Invalid rule timestamp: '{}'", value)
        return fallback
    return ts if ts.tzinfo else ts.replace(tzinfo=UTC)


class LearningStore:
    """Event log plus rule set, persisted through a RecordStore.

    Args:
        store: Backend for the event log and rule document.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store if store is not None else MemoryRecordStore()
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._events: list[LearningEvent] = []
        self._rules: list[MatchingRule] = []
        self._applied = 0
        self._lock = threading.RLock()

    # -- lifecycle -----------------------------------------------------------

    def initialize(self) -> None:
        """Load events and rules from storage, then fold any unapplied events."""
        with self._lock:
            self._events = self._load_events()
            self._rules, self._applied = self._load_rules()
            if self._applied > len(self._events):
                logger.warning(
                    "Rule watermark {} beyond {} events, rebuilding",
                    self._applied,
                    len(self._events),
                )
                self._rules, self._applied = [], 0
            if self._applied < len(self._events):
                try:
                    self.regenerate_rules()
                except PersistenceError as e:
                    logger.warning("Rules regenerated in memory only: {}", e)
        logger.info(
            "Learning store ready: {} events, {} rules", len(self._events), len(self._rules)
        )

    def reset(self) -> None:
        """Drop in-memory state. Stored data is untouched."""
        with self._lock:
            self._events = []
            self._rules = []
            self._applied = 0

    def _load_events(self) -> list[LearningEvent]:
        try:
            return [LearningEvent.model_validate(r) for r in self._store.read_log(EVENTS_LOG)]
        except _READ_ERRORS as e:
            logger.warning("Could not read learning events, starting empty: {}", e)
            return []

    def _load_rules(self) -> tuple[list[MatchingRule], int]:
        try:
            raw = self._store.get(RULES_KEY) or {}
            rules = [MatchingRule.model_validate(r) for r in raw.get("rules", [])]
            return rules, int(raw.get("applied_events", 0))
        except _READ_ERRORS as e:
            logger.warning("Could not read matching rules, starting empty: {}", e)
            return [], 0

    def _save_rules(self) -> None:
        payload = {
            "applied_events": self._applied,
            "rules": [r.model_dump(mode="json") for r in self._rules],
        }
        try:
            self._store.set(RULES_KEY, payload)
        except _WRITE_ERRORS as e:
            logger.error("Failed to persist matching rules: {}", e)
            msg = f"Matching rules were not saved: {e}"
            raise PersistenceError(msg) from e

    # -- recording -----------------------------------------------------------

    def record(self, event: LearningEvent) -> None:
        """Append an event and regenerate rules.

        Raises:
            PersistenceError: If the event or the regenerated rules could not
                be written. The event is still kept in memory.
        """
        with self._lock:
            self._events.append(event)
            failure: PersistenceError | None = None
            try:
                self._store.append(EVENTS_LOG, event.model_dump(mode="json"))
            except _WRITE_ERRORS as e:
                logger.error("Failed to persist learning event {}: {}", event.event_id, e)
                msg = f"Learning event {event.event_id} was not saved: {e}"
                failure = PersistenceError(msg)
            try:
                self.regenerate_rules()
            except PersistenceError as e:
                failure = failure or e
            if failure is not None:
                raise failure

    def record_manual_mapping(
        self, source: str, target: str, vendor: str | None = None
    ) -> LearningEvent:
        """Record a user-created mapping (confidence 1.0)."""
        event = LearningEvent(
            type=LearningEventType.MANUAL_MAP,
            source_specialty=source,
            target_specialty=target,
            confidence=1.0,
            reason="Manual user mapping",
            vendor=vendor,
            patterns=analyze_patterns(source, target),
        )
        self.record(event)
        return event

    def record_auto_map_decision(
        self,
        source: str,
        target: str,
        approved: bool,
        confidence: float,
        vendor: str | None = None,
    ) -> LearningEvent:
        """Record approval or rejection of an auto-suggested match."""
        event = LearningEvent(
            type=(
                LearningEventType.AUTO_MAP_APPROVE
                if approved
                else LearningEventType.AUTO_MAP_REJECT
            ),
            source_specialty=source,
            target_specialty=target,
            confidence=confidence,
            reason="Auto-map approval" if approved else "Auto-map rejection",
            vendor=vendor,
            patterns=analyze_patterns(source, target),
        )
        self.record(event)
        return event

    def record_synonym_change(self, specialty: str, synonym: str, is_add: bool) -> LearningEvent:
        event = LearningEvent(
            type=LearningEventType.SYNONYM_ADD if is_add else LearningEventType.SYNONYM_REMOVE,
            source_specialty=specialty,
            target_specialty=synonym,
            confidence=1.0,
            reason="Synonym addition" if is_add else "Synonym removal",
            patterns=analyze_patterns(specialty, synonym),
        )
        self.record(event)
        return event

    # -- rules ---------------------------------------------------------------

    def regenerate_rules(self, now: datetime | None = None) -> list[MatchingRule]:
        """Prune stale rules and fold every not-yet-applied event into the rule set.

        Args:
            now: Reference time for pruning and ``last_applied``.

        Returns:
            The current rules.

        Raises:
            PersistenceError: If the rule document could not be written.
        """
        with self._lock:
            now = now or self._clock()
            before = len(self._rules)
            self._rules = [
                r
                for r in self._rules
                if r.success_count > 0 or now - _parse_ts(r.created_at, now) <= STALE_RULE_AGE
            ]
            pruned = before - len(self._rules)

            pending = self._events[self._applied :]
            by_source: dict[str, list[LearningEvent]] = {}
            for event in pending:
                if event.type in _APPROVALS and event.target_specialty:
                    by_source.setdefault(event.source_specialty, []).append(event)
            for source, approvals in by_source.items():
                for event in approvals:
                    self._apply_success(source, event, now)

            for event in pending:
                if event.type == LearningEventType.AUTO_MAP_REJECT and event.target_specialty:
                    self._apply_failure(event, now)

            self._applied = len(self._events)
            if pending or pruned:
                logger.info(
                    "Regenerated rules from {} event(s): {} rule(s), {} pruned",
                    len(pending),
                    len(self._rules),
                    pruned,
                )
            self._save_rules()
            return list(self._rules)

    def _apply_success(self, source: str, event: LearningEvent, now: datetime) -> None:
        target = event.target_specialty or ""
        example = RuleExample(
            source=source, target=target, confidence=event.confidence, timestamp=event.timestamp
        )
        rule = self._find_rule(source, target)
        if rule is None:
            rule = MatchingRule(
                source=source,
                target=target,
                confidence=event.confidence,
                match_type=match_type_for(event.patterns),
                success_count=1,
                created_at=now.isoformat(),
            )
            self._rules.append(rule)
        else:
            rule.success_count += 1
            rule.confidence = min(1.0, round(rule.confidence + CONFIDENCE_STEP, 4))
        rule.examples = [*rule.examples, example][-MAX_RULE_EXAMPLES:]
        rule.last_applied = now.isoformat()
        if event.vendor:
            rule.vendor_context[event.vendor] = rule.vendor_context.get(event.vendor, 0) + 1

    def _apply_failure(self, event: LearningEvent, now: datetime) -> None:
        target = event.target_specialty or ""
        rule = self._find_rule(event.source_specialty, target)
        if rule is None:
            rule = MatchingRule(
                source=event.source_specialty,
                target=target,
                confidence=event.confidence,
                match_type=match_type_for(event.patterns),
                success_count=0,
                created_at=now.isoformat(),
            )
            self._rules.append(rule)
        rule.failure_count += 1

    def _find_rule(self, source: str, target: str) -> MatchingRule | None:
        for rule in self._rules:
            if rule.source == source and rule.target == target:
                return rule
        return None

    def get_rules(self) -> list[MatchingRule]:
        """All rules, highest confidence first."""
        return sorted(self._rules, key=lambda r: r.confidence, reverse=True)

    def get_rule_for(self, source: str, target: str) -> MatchingRule | None:
        """Rule for a pair in either direction, compared case-insensitively."""
        for rule in self._rules:
            if (_same(rule.source, source) and _same(rule.target, target)) or (
                _same(rule.source, target) and _same(rule.target, source)
            ):
                return rule
        return None

    def toggle_rule(self, rule_id: str) -> MatchingRule:
        """Flip a rule's active flag.

        Raises:
            KeyError: If no rule has this id.
            PersistenceError: If the change could not be saved.
        """
        with self._lock:
            for rule in self._rules:
                if rule.rule_id == rule_id:
                    rule.is_active = not rule.is_active
                    self._save_rules()
                    return rule
        msg = f"Rule '{rule_id}' not found"
        raise KeyError(msg)

    # -- queries -------------------------------------------------------------

    def events(self) -> list[LearningEvent]:
        return list(self._events)

    def suggestions_for(self, specialty: str, vendor: str | None = None) -> list[LearnedSuggestion]:
        """Targets suggested for a specialty by rules and past approvals.

        Active rules with this source come first; then past approvals whose
        source resembles the specialty (word overlap of at least 0.7, equal
        acronyms, or shared first/last word). Deduplicated by target, keeping
        the highest confidence, sorted by confidence.

        Args:
            specialty: Source label to find targets for.
            vendor: Vendor of the source; rules confirmed for this vendor say so.
        """
        found: dict[str, LearnedSuggestion] = {}

        def offer(suggestion: LearnedSuggestion) -> None:
            key = suggestion.target.strip().lower()
            current = found.get(key)
            if current is None or suggestion.confidence > current.confidence:
                found[key] = suggestion

        for rule in self._rules:
            if not rule.is_active or rule.success_count == 0 or not _same(rule.source, specialty):
                continue
            reason = (
                f"Based on {rule.match_type.value} match pattern with "
                f"{rule.success_count} successful uses"
            )
            if vendor and vendor in rule.vendor_context:
                reason += f" (confirmed for {vendor})"
            offer(
                LearnedSuggestion(
                    target=rule.target,
                    confidence=rule.confidence,
                    reason=reason,
                    rule_id=rule.rule_id,
                )
            )

        for event in self._events:
            if event.type not in _APPROVALS or not event.target_specialty:
                continue
            if _same(event.target_specialty, specialty):
                continue
            patterns = analyze_patterns(specialty, event.source_specialty)
            if patterns.word_match >= PATTERN_WORD_THRESHOLD:
                confidence, reason = patterns.word_match, "Similar word patterns"
            elif patterns.acronym_match:
                confidence, reason = ACRONYM_CONFIDENCE, "Matching acronyms"
            elif patterns.prefix_match or patterns.suffix_match:
                confidence, reason = AFFIX_CONFIDENCE, "Matching prefix or suffix"
            else:
                continue
            offer(
                LearnedSuggestion(
                    target=event.target_specialty, confidence=confidence, reason=reason
                )
            )

        return sorted(found.values(), key=lambda s: s.confidence, reverse=True)

    def stats(self, groups: list[MappedGroup]) -> MatchingStats:
        """Aggregate counters over the given mapped groups and this store."""
        return compute_stats(groups, self.events(), self._rules)

    def unmapped_specialties(
        self, observations: Iterable[Observation], groups: list[MappedGroup]
    ) -> list[Observation]:
        """Observations that do not belong to any mapped group."""
        mapped = {obs.key for g in groups for obs in g.specialties}
        return [obs for obs in observations if obs.key not in mapped]
