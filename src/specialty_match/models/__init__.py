"""Pydantic data models for specialty matching."""

from specialty_match.models.config import (
    DomainRule,
    EquivalenceGroup,
    MatchingConfig,
    ScoreSettings,
)
from specialty_match.models.learning import (
    LearnedSuggestion,
    LearningEvent,
    LearningEventType,
    MatchingRule,
    MatchingStats,
    MatchType,
    PatternSignals,
    RuleExample,
)
from specialty_match.models.matching import (
    AutoMapMatch,
    AutoMapSuggestion,
    MappedGroup,
    SimilarityScore,
    SpecialtyMapping,
    SpecialtyMappingRecord,
    SuggestionStatus,
)
from specialty_match.models.specialty import (
    Observation,
    PercentileBundle,
    Specialty,
    SpecialtyMetadata,
    SpecialtyMetrics,
    SpecialtySource,
    SynonymConflict,
    SynonymSet,
    observation_key,
)

__all__ = [
    # Config
    "DomainRule",
    "EquivalenceGroup",
    "MatchingConfig",
    "ScoreSettings",
    # Learning
    "LearnedSuggestion",
    "LearningEvent",
    "LearningEventType",
    "MatchType",
    "MatchingRule",
    "MatchingStats",
    "PatternSignals",
    "RuleExample",
    # Matching
    "AutoMapMatch",
    "AutoMapSuggestion",
    "MappedGroup",
    "SimilarityScore",
    "SpecialtyMapping",
    "SpecialtyMappingRecord",
    "SuggestionStatus",
    # Specialty
    "Observation",
    "PercentileBundle",
    "Specialty",
    "SpecialtyMetadata",
    "SpecialtyMetrics",
    "SpecialtySource",
    "SynonymConflict",
    "SynonymSet",
    "observation_key",
]
