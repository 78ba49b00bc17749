"""Textual pattern signals between two specialty labels.

Used to classify learned rules (exact / prefix / suffix / acronym / similar)
and to mine suggestions from past approvals.
"""

from __future__ import annotations

from specialty_match.models.learning import MatchType, PatternSignals


def _words(text: str) -> list[str]:
    return text.lower().split()


def acronym(text: str) -> str:
    """First letters of each word, lower-case ('Emergency Medicine' -> 'em')."""
    return "".join(w[0] for w in _words(text))


def analyze_patterns(
    source: str, target: str, *, vendor_specific: bool = False
) -> PatternSignals:
    """Compare two labels word by word.

    Args:
        source: Source specialty label.
        target: Target specialty label.
        vendor_specific: Whether the decision only held for one vendor.

    Returns:
        PatternSignals where ``word_match`` is the share of source words found
        in the target, over the longer word count. Acronyms only count when
        both labels have at least two words.
    """
    source_words = _words(source)
    target_words = _words(target)
    if not source_words or not target_words:
        return PatternSignals(vendor_specific=vendor_specific)

    target_set = set(target_words)
    shared = sum(1 for w in source_words if w in target_set)
    word_match = min(1.0, shared / max(len(source_words), len(target_words)))

    return PatternSignals(
        word_match=round(word_match, 4),
        prefix_match=source_words[0] == target_words[0],
        suffix_match=source_words[-1] == target_words[-1],
        acronym_match=(
            len(source_words) > 1
            and len(target_words) > 1
            and acronym(source) == acronym(target)
        ),
        vendor_specific=vendor_specific,
    )


def match_type_for(patterns: PatternSignals) -> MatchType:
    """Pick the rule match type implied by the recorded patterns."""
    if patterns.word_match >= 1.0:
        return MatchType.EXACT
    if patterns.prefix_match and not patterns.suffix_match:
        return MatchType.PREFIX
    if patterns.suffix_match and not patterns.prefix_match:
        return MatchType.SUFFIX
    if patterns.acronym_match:
        return MatchType.ACRONYM
    if patterns.vendor_specific:
        return MatchType.VENDOR_SPECIFIC
    return MatchType.SIMILAR


def pair_pattern_type(source: str, target: str) -> MatchType:
    """Classify an adjacent pair in a mapped group for statistics."""
    patterns = analyze_patterns(source, target)
    if patterns.word_match >= 1.0:
        return MatchType.EXACT
    if patterns.prefix_match:
        return MatchType.PREFIX
    if patterns.suffix_match:
        return MatchType.SUFFIX
    if patterns.acronym_match:
        return MatchType.ACRONYM
    return MatchType.SIMILAR
