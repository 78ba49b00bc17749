"""Specialty label normalization, scoring, and suggestion generation."""

from specialty_match.matching.domains import DomainClassifier
from specialty_match.matching.engine import MatchingEngine, validate_observation
from specialty_match.matching.equivalence import EquivalenceTable
from specialty_match.matching.normalize import normalize, registry_key, word_set
from specialty_match.matching.scorer import SimilarityScorer
from specialty_match.matching.vendors import normalize_vendor_name

__all__ = [
    "DomainClassifier",
    "EquivalenceTable",
    "MatchingEngine",
    "SimilarityScorer",
    "normalize",
    "normalize_vendor_name",
    "registry_key",
    "validate_observation",
    "word_set",
]
