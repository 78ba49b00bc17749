"""Matching configuration models.

The domain keyword table and the equivalence-group table are curated data
loaded from ``data/matching_config.json`` so they can be extended without
touching code.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class DomainRule(BaseModel):
    """A coarse clinical domain and the substrings that identify it."""

    name: str = Field(..., description="Domain tag (e.g., 'CARDIAC')")
    keywords: list[str] = Field(..., min_length=1)


class EquivalenceGroup(BaseModel):
    """Strings treated as interchangeable by domain convention."""

    name: str
    equivalents: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    require_all: bool = False
    exclusions: list[str] = Field(default_factory=list)


class ScoreSettings(BaseModel):
    """Fixed scores assigned by the non-ratio scoring rules."""

    synonym: float = Field(default=0.95, ge=0.0, le=1.0)
    critical_care: float = Field(default=0.9, ge=0.0, le=1.0)
    containment: float = Field(default=0.9, ge=0.0, le=1.0)


class MatchingConfig(BaseModel):
    """All curated tables used by the classifier and scorer."""

    version: str = "1.0"
    domains: list[DomainRule] = Field(default_factory=list)
    equivalence_groups: list[EquivalenceGroup] = Field(default_factory=list)
    generic_words: list[str] = Field(default_factory=list)
    critical_care_terms: list[str] = Field(
        default_factory=lambda: ["critical care", "intensivist"]
    )
    scores: ScoreSettings = Field(default_factory=ScoreSettings)
