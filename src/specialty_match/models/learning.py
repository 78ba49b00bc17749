"""Learning system data models.

LearningEvent is the immutable audit record of every mapping decision and
synonym change. MatchingRule is the mutable, derived pattern that biases
future suggestions. MatchingStats is the aggregate view reported to users.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

RULE_PATTERN_SEPARATOR = " → "


class LearningEventType(StrEnum):
    """Kind of decision captured by a LearningEvent."""

    MANUAL_MAP = "manual_map"
    AUTO_MAP_APPROVE = "auto_map_approve"
    AUTO_MAP_REJECT = "auto_map_reject"
    SYNONYM_ADD = "synonym_add"
    SYNONYM_REMOVE = "synonym_remove"


class MatchType(StrEnum):
    """How a rule's source and target relate textually."""

    EXACT = "exact"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    ACRONYM = "acronym"
    SIMILAR = "similar"
    VENDOR_SPECIFIC = "vendor_specific"


class PatternSignals(BaseModel):
    """Textual relationship between a source and target specialty."""

    model_config = ConfigDict(frozen=True)

    word_match: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Shared words / longer word count"
    )
    prefix_match: bool = False
    suffix_match: bool = False
    acronym_match: bool = False
    vendor_specific: bool = False


class LearningEvent(BaseModel):
    """An append-only record of a mapping-related decision."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: LearningEventType
    source_specialty: str = Field(..., description="Specialty the decision was about")
    target_specialty: str | None = Field(
        default=None, description="Mapped or synonym text, when applicable"
    )
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    reason: str = ""
    timestamp: str = Field(
        default_factory=lambda: datetime.now(tz=UTC).isoformat(),
        description="ISO 8601 timestamp of the decision",
    )
    vendor: str | None = None
    patterns: PatternSignals = Field(default_factory=PatternSignals)


class RuleExample(BaseModel):
    """One decision that contributed to a rule."""

    source: str
    target: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    timestamp: str


class MatchingRule(BaseModel):
    """A learned source -> target pattern with usage counters."""

    rule_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    source: str
    target: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    match_type: MatchType = MatchType.SIMILAR
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    examples: list[RuleExample] = Field(
        default_factory=list, description="Most recent contributing decisions, bounded"
    )
    is_active: bool = True
    created_at: str = Field(
        default_factory=lambda: datetime.now(tz=UTC).isoformat(),
    )
    last_applied: str | None = None
    vendor_context: dict[str, int] = Field(
        default_factory=dict, description="Approvals recorded per vendor"
    )

    @property
    def pattern(self) -> str:
        """Human-readable 'source → target' pattern."""
        return rule_pattern(self.source, self.target)


class LearnedSuggestion(BaseModel):
    """A target suggested from the learned rules or event history."""

    target: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str
    rule_id: str | None = None


class MatchingStats(BaseModel):
    """Aggregate counters over mapped groups, rules, and events."""

    total_mappings: int = Field(
        default=0, description="Adjacent cross-vendor connections across mapped groups"
    )
    accuracy_rate: float = Field(
        default=0.0, description="Approved / (approved + rejected) suggestions, in %"
    )
    active_rules: int = 0
    total_events: int = 0
    vendor_stats: dict[str, int] = Field(default_factory=dict)
    pattern_breakdown: dict[str, float] = Field(
        default_factory=dict, description="Percentage of adjacent pairs per match type"
    )
    recent_learnings: list[LearningEvent] = Field(default_factory=list)


def rule_pattern(source: str, target: str) -> str:
    """Format a rule pattern string."""
    return f"{source}{RULE_PATTERN_SEPARATOR}{target}"
