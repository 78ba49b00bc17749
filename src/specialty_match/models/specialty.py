"""Canonical specialty catalog and survey observation models.

A Specialty is a catalog entry keyed by a stable id, carrying its seeded
(predefined) and user-added (custom) synonym strings. Observations are the
(specialty, vendor) pairs read from uploaded survey rows, optionally with the
percentile metric bundles reported by the vendor.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class SpecialtySource(StrEnum):
    """Where a catalog entry came from."""

    PREDEFINED = "predefined"
    CUSTOM = "custom"


class SynonymSet(BaseModel):
    """Ordered synonym strings for one specialty."""

    predefined: list[str] = Field(
        default_factory=list,
        description="Seeded synonyms; not editable through the registry",
    )
    custom: list[str] = Field(
        default_factory=list, description="User-added synonyms, in insertion order"
    )


class SpecialtyMetadata(BaseModel):
    """Bookkeeping for a catalog entry."""

    last_modified: str = Field(
        default_factory=lambda: datetime.now(tz=UTC).isoformat(),
        description="ISO 8601 timestamp of the last change",
    )
    source: SpecialtySource = Field(
        default=SpecialtySource.CUSTOM,
        description="Whether the entry was seeded or added by a user",
    )


class Specialty(BaseModel):
    """A canonical specialty in the catalog."""

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="Stable identifier (e.g., 'cardiology')",
    )
    name: str = Field(..., description="Canonical display name, unique case-insensitively")
    category: str | None = Field(
        default=None, description="Optional coarse grouping (e.g., 'Medical')"
    )
    synonyms: SynonymSet = Field(default_factory=SynonymSet)
    metadata: SpecialtyMetadata = Field(default_factory=SpecialtyMetadata)

    def all_names(self) -> list[str]:
        """Return the canonical name followed by predefined and custom synonyms."""
        return [self.name, *self.synonyms.predefined, *self.synonyms.custom]


class PercentileBundle(BaseModel):
    """25th/50th/75th/90th percentile values for one metric."""

    p25: float | None = None
    p50: float | None = None
    p75: float | None = None
    p90: float | None = None


class SpecialtyMetrics(BaseModel):
    """Aggregated compensation metrics reported for an observation."""

    tcc: PercentileBundle | None = Field(
        default=None, description="Total cash compensation percentiles"
    )
    wrvu: PercentileBundle | None = Field(
        default=None, description="Work RVU percentiles"
    )
    cf: PercentileBundle | None = Field(
        default=None, description="Conversion factor percentiles"
    )


class Observation(BaseModel):
    """A specialty string as it appears in one vendor's survey."""

    specialty: str = Field(..., description="Raw specialty label from the survey row")
    vendor: str = Field(..., description="Survey publisher (e.g., 'MGMA')")
    metrics: SpecialtyMetrics | None = Field(
        default=None, description="Optional percentile metrics for this specialty"
    )

    @property
    def key(self) -> str:
        """Exclusion-set key in the form 'specialty:vendor'."""
        return observation_key(self.specialty, self.vendor)


def observation_key(specialty: str, vendor: str) -> str:
    """Build the case-insensitive 'specialty:vendor' key for an observation."""
    return f"{specialty.strip()}:{vendor.strip()}".lower()


class SynonymConflict(BaseModel):
    """A normalized string claimed by more than one catalog entry."""

    text: str = Field(..., description="Registry key shared by the entries")
    specialty_ids: list[str] = Field(..., min_length=2)
    conflict_types: list[str] = Field(
        ..., description="Per entry: 'name', 'predefined', or 'custom'"
    )
