"""Specialty catalog and synonym registry."""

from specialty_match.registry.registry import (
    CATALOG_KEY,
    SYNONYMS_UPDATED,
    SpecialtyRegistry,
)
from specialty_match.registry.validation import (
    synonym_variants,
    validate_synonym_text,
)

__all__ = [
    "CATALOG_KEY",
    "SYNONYMS_UPDATED",
    "SpecialtyRegistry",
    "synonym_variants",
    "validate_synonym_text",
]
