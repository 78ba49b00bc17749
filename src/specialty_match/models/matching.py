"""Scoring, suggestion, and mapping models.

SimilarityScore is the scorer's output. AutoMapSuggestion groups the
cross-vendor candidates proposed for one source observation. MappedGroup and
SpecialtyMapping are the persisted outcomes of human decisions: the former a
cross-vendor cluster, the latter the per-survey source -> canonical mapping.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator

from specialty_match.models.specialty import Observation


class SimilarityScore(BaseModel):
    """Similarity between two specialty strings."""

    value: float = Field(..., ge=0.0, le=1.0, description="Similarity (0.0 to 1.0)")
    reason: str = Field(..., description="Which rule produced the score")


class SuggestionStatus(StrEnum):
    """Human decision on a suggested match."""

    APPROVED = "approved"
    REJECTED = "rejected"


class AutoMapMatch(BaseModel):
    """One candidate target for a source observation."""

    specialty: Observation
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str
    status: SuggestionStatus | None = None


class AutoMapSuggestion(BaseModel):
    """All candidates proposed for a single source observation."""

    source_specialty: Observation
    suggested_matches: list[AutoMapMatch] = Field(default_factory=list)


class MappedGroup(BaseModel):
    """A persisted cluster of observations treated as one canonical specialty."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    specialties: list[Observation] = Field(..., min_length=1)
    created_at: str = Field(
        default_factory=lambda: datetime.now(tz=UTC).isoformat(),
        description="ISO 8601 timestamp of when the group was created",
    )
    is_single_source: bool = Field(
        default=False,
        description="True when every observation comes from the same vendor",
    )

    @model_validator(mode="after")
    def _derive_single_source(self) -> MappedGroup:
        from specialty_match.matching.vendors import normalize_vendor_name

        vendors = {normalize_vendor_name(obs.vendor) for obs in self.specialties}
        self.is_single_source = len(vendors) <= 1
        return self


class SpecialtyMappingRecord(BaseModel):
    """Persisted row shape: one row per (survey, source, target) triple."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    survey_id: str
    source_specialty: str
    mapped_specialty: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    is_verified: bool = False
    notes: str | None = None


class SpecialtyMapping(BaseModel):
    """Logical mapping of one survey's source specialty to canonical names.

    Multiple targets are allowed; storage splits them into one
    SpecialtyMappingRecord per target.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    survey_id: str = Field(..., description="Survey the source label came from")
    source_specialty: str = Field(..., description="Raw vendor specialty label")
    mapped_specialties: list[str] = Field(
        ..., min_length=1, description="Canonical names, in order, without repeats"
    )
    confidence: float = Field(..., ge=0.0, le=1.0)
    is_verified: bool = Field(
        default=False, description="True once a human has confirmed the mapping"
    )
    notes: str | None = None

    @model_validator(mode="after")
    def _dedupe_targets(self) -> SpecialtyMapping:
        seen: list[str] = []
        for name in self.mapped_specialties:
            if name not in seen:
                seen.append(name)
        self.mapped_specialties = seen
        return self

    def to_records(self) -> list[SpecialtyMappingRecord]:
        """Split into one persisted row per mapped specialty."""
        return [
            SpecialtyMappingRecord(
                survey_id=self.survey_id,
                source_specialty=self.source_specialty,
                mapped_specialty=target,
                confidence=self.confidence,
                is_verified=self.is_verified,
                notes=self.notes,
            )
            for target in self.mapped_specialties
        ]

    @classmethod
    def from_records(cls, records: list[SpecialtyMappingRecord]) -> SpecialtyMapping:
        """Rebuild a logical mapping from rows sharing survey and source.

        Args:
            records: Rows for one (survey, source) pair, in insertion order.

        Returns:
            The combined mapping. Confidence and verification come from the
            first row; all rows of a mapping are written with the same values.

        Raises:
            ValueError: If records is empty or rows disagree on survey/source.
        """
        if not records:
            msg = "Cannot build a SpecialtyMapping from zero records"
            raise ValueError(msg)
        first = records[0]
        for rec in records[1:]:
            if (rec.survey_id, rec.source_specialty) != (
                first.survey_id,
                first.source_specialty,
            ):
                msg = (
                    f"Records mix sources: '{first.source_specialty}' and "
                    f"'{rec.source_specialty}'"
                )
                raise ValueError(msg)
        return cls(
            survey_id=first.survey_id,
            source_specialty=first.source_specialty,
            mapped_specialties=[rec.mapped_specialty for rec in records],
            confidence=first.confidence,
            is_verified=first.is_verified,
            notes=first.notes,
        )
