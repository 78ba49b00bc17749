"""Specialty string normalization.

Two levels are provided. ``normalize`` keeps separators (slash, hyphen,
parentheses) in a canonical spacing so equivalence-group strings compare
verbatim. ``registry_key`` is looser: punctuation and connective stopwords are
dropped so "Allergy & Immunology" and "Allergy/Immunology" key identically.
"""

from __future__ import annotations

import re

REGISTRY_STOPWORDS = frozenset({"and", "or", "the", "of", "in", "with", "without"})

_WHITESPACE_RE = re.compile(r"\s+")
_OPEN_PAREN_RE = re.compile(r"\s*\(\s*")
_CLOSE_PAREN_RE = re.compile(r"\s*\)")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def normalize(raw: str) -> str:
    """Canonicalize casing, separators, and whitespace.

    "Surgery(Cardiothoracic/Cardiovascular)" and
    "surgery (cardiothoracic / cardiovascular)" both become
    "surgery (cardiothoracic / cardiovascular)". Idempotent.

    Args:
        raw: Specialty label as written by a vendor.

    Returns:
        Normalized string; empty for blank input.
    """
    text = raw.lower()
    text = text.replace("&", " and ")
    text = text.replace("/", " / ")
    text = text.replace("-", " - ")
    text = _OPEN_PAREN_RE.sub(" (", text)
    text = _CLOSE_PAREN_RE.sub(")", text)
    text = _WHITESPACE_RE.sub(" ", text)
    return text.strip()


def registry_key(raw: str) -> str:
    """Strict key used for synonym registry lookups."""
    return " ".join(key_words(raw))


def key_words(raw: str) -> list[str]:
    """Alphanumeric words of ``raw`` with registry stopwords removed, in order."""
    text = _NON_ALNUM_RE.sub(" ", raw.lower().replace("&", " and "))
    return [w for w in text.split() if w not in REGISTRY_STOPWORDS]


def word_set(raw: str) -> set[str]:
    return set(key_words(raw))
