"""Learning system: event log, derived rules, and statistics."""

from specialty_match.learning.patterns import (
    acronym,
    analyze_patterns,
    match_type_for,
)
from specialty_match.learning.stats import accuracy_rate, compute_stats
from specialty_match.learning.store import EVENTS_LOG, RULES_KEY, LearningStore

__all__ = [
    "EVENTS_LOG",
    "RULES_KEY",
    "LearningStore",
    "accuracy_rate",
    "acronym",
    "analyze_patterns",
    "compute_stats",
    "match_type_for",
]
