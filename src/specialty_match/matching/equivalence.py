"""Curated equivalence groups.

A group lists strings that are interchangeable by convention ("Family
Medicine" / "Family Practice") plus optional keywords for looser matching of
labels not listed verbatim.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from specialty_match.matching.normalize import normalize, word_set
from specialty_match.models.config import EquivalenceGroup
from specialty_match.models.matching import SimilarityScore


class _CompiledGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    equivalents: frozenset[str]
    keywords: tuple[str, ...]
    require_all: bool
    exclusions: tuple[str, ...]


class EquivalenceTable:
    """Ordered equivalence groups with pre-normalized members."""

    def __init__(self, groups: list[EquivalenceGroup]) -> None:
        self._groups = [
            _CompiledGroup(
                name=g.name,
                equivalents=frozenset(normalize(e) for e in g.equivalents),
                keywords=tuple(dict.fromkeys(kw.lower() for kw in g.keywords)),
                require_all=g.require_all,
                exclusions=tuple(normalize(x) for x in g.exclusions),
            )
            for g in groups
        ]

    def __len__(self) -> int:
        return len(self._groups)

    def group_of(self, normalized_name: str) -> str | None:
        """Return the name of the group listing this string, if any."""
        for group in self._groups:
            if normalized_name in group.equivalents:
                return group.name
        return None

    def match(self, a: str, b: str) -> SimilarityScore | None:
        """Score two normalized names against every group, first hit wins.

        Both names in one group's equivalents score 1.0. Otherwise the
        keyword rule applies when neither name contains an exclusion, both
        names share at least one group keyword, and the keywords found across
        the two word sets reach the group's threshold (all of them with
        ``require_all``, else ``min(2, len(keywords))``).

        Args:
            a: First normalized name.
            b: Second normalized name.

        Returns:
            The score, or None if no group applies.
        """
        for group in self._groups:
            if a in group.equivalents and b in group.equivalents:
                return SimilarityScore(value=1.0, reason=f"{group.name} equivalence")

        words_a = word_set(a)
        words_b = word_set(b)
        for group in self._groups:
            if not group.keywords:
                continue
            if any(x in a or x in b for x in group.exclusions):
                continue
            in_a = {kw for kw in group.keywords if kw in words_a}
            in_b = {kw for kw in group.keywords if kw in words_b}
            if not in_a & in_b:
                continue
            matched = len(in_a | in_b)
            total = len(group.keywords)
            needed = total if group.require_all else min(2, total)
            if matched >= needed:
                return SimilarityScore(
                    value=round(matched / total, 4),
                    reason=f"{group.name} keyword match",
                )
        return None
