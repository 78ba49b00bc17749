"""Aggregate statistics over mapped groups and learning history."""

from __future__ import annotations

from specialty_match.learning.patterns import pair_pattern_type
from specialty_match.matching.vendors import normalize_vendor_name
from specialty_match.models.learning import (
    LearningEvent,
    LearningEventType,
    MatchingRule,
    MatchingStats,
    MatchType,
)
from specialty_match.models.matching import MappedGroup

RECENT_EVENT_LIMIT = 100


def _cross_vendor(groups: list[MappedGroup]) -> list[MappedGroup]:
    return [g for g in groups if not g.is_single_source and len(g.specialties) > 1]


def accuracy_rate(events: list[LearningEvent]) -> float:
    """Percentage of auto-map decisions that were approvals (0 when none)."""
    decisions = [
        e
        for e in events
        if e.type in (LearningEventType.AUTO_MAP_APPROVE, LearningEventType.AUTO_MAP_REJECT)
    ]
    if not decisions:
        return 0.0
    approved = sum(1 for e in decisions if e.type == LearningEventType.AUTO_MAP_APPROVE)
    return round(approved / len(decisions) * 100, 1)


def compute_stats(
    groups: list[MappedGroup],
    events: list[LearningEvent],
    rules: list[MatchingRule],
) -> MatchingStats:
    """Build MatchingStats.

    Connections are counted along each cross-vendor group's chain: a group of
    n observations contributes n - 1. Pattern percentages are taken over the
    same adjacent pairs.

    Args:
        groups: All persisted mapped groups.
        events: The full learning event log.
        rules: Current matching rules.

    Returns:
        Populated MatchingStats.
    """
    linked = _cross_vendor(groups)
    total = sum(len(g.specialties) - 1 for g in linked)

    vendor_stats: dict[str, int] = {}
    pattern_counts = {t.value: 0 for t in MatchType}
    for group in linked:
        for obs in group.specialties:
            vendor = normalize_vendor_name(obs.vendor)
            vendor_stats[vendor] = vendor_stats.get(vendor, 0) + 1
        for source, target in zip(group.specialties, group.specialties[1:], strict=False):
            pattern_counts[pair_pattern_type(source.specialty, target.specialty).value] += 1

    pairs = sum(pattern_counts.values())
    breakdown = {
        name: round(count / pairs * 100, 1) if pairs else 0.0
        for name, count in pattern_counts.items()
    }

    recent = sorted(events, key=lambda e: e.timestamp, reverse=True)[:RECENT_EVENT_LIMIT]
    return MatchingStats(
        total_mappings=total,
        accuracy_rate=accuracy_rate(events),
        active_rules=sum(1 for r in rules if r.is_active),
        total_events=len(events),
        vendor_stats=vendor_stats,
        pattern_breakdown=breakdown,
        recent_learnings=recent,
    )
