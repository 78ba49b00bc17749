"""Synonym and specialty-name validation rules, plus variant suggestions."""

from __future__ import annotations

import re

from specialty_match.errors import InvalidSynonymError

MIN_LENGTH = 2
MAX_LENGTH = 100
RESERVED_WORDS = frozenset({"unknown", "other", "misc", "various"})

_ALLOWED_CHARS_RE = re.compile(r"^[A-Za-z0-9 &/\-(),.']+$")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Trim and collapse internal whitespace."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def validate_synonym_text(text: str, *, label: str = "Synonym") -> str:
    """Check a synonym (or specialty name) against the catalog rules.

    Args:
        text: Candidate text as typed by the user.
        label: Noun used in error messages.

    Returns:
        The cleaned text.

    Raises:
        InvalidSynonymError: If the text is too short or long, is a reserved
            word, or contains unsupported characters.
    """
    cleaned = clean_text(text)
    if len(cleaned) < MIN_LENGTH:
        msg = f"{label} must be at least {MIN_LENGTH} characters long"
        raise InvalidSynonymError(msg)
    if len(cleaned) > MAX_LENGTH:
        msg = f"{label} cannot exceed {MAX_LENGTH} characters"
        raise InvalidSynonymError(msg)
    if cleaned.lower() in RESERVED_WORDS:
        msg = f"'{cleaned}' is a reserved word and cannot be used as a {label.lower()}"
        raise InvalidSynonymError(msg)
    if not _ALLOWED_CHARS_RE.match(cleaned):
        msg = f"{label} '{cleaned}' contains unsupported characters"
        raise InvalidSynonymError(msg)
    return cleaned


def synonym_variants(name: str) -> list[str]:
    """Spelling variants of a name worth offering as synonyms.

    Swaps "&" and "and", replaces slashes/hyphens with spaces, and the
    reverse. Variants equal to the input or failing validation are dropped.
    """
    candidates = [
        re.sub(r"\s+&\s+", " and ", name),
        re.sub(r"\s+and\s+", " & ", name, flags=re.IGNORECASE),
        clean_text(re.sub(r"[/\-]", " ", name)),
        re.sub(r"\s+", "-", name.strip()),
        re.sub(r"\s+", "/", name.strip()),
    ]
    variants: list[str] = []
    for candidate in candidates:
        if candidate == name or candidate in variants:
            continue
        try:
            validate_synonym_text(candidate)
        except InvalidSynonymError:
            continue
        variants.append(candidate)
    return variants
