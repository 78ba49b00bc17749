"""Exception hierarchy for specialty matching.

Only registry mutations and I/O boundaries raise. Scoring and classification
report "no match" as a zero score, never as an exception.
"""

from __future__ import annotations


class SpecialtyMatchError(Exception):
    """Base class for all specialty matching errors."""


class DuplicateSynonymError(SpecialtyMatchError):
    """A synonym or name collides with an existing catalog entry.

    Attributes:
        text: The rejected text.
        existing_id: Id of the specialty that already owns the text.
        conflict_type: 'name', 'predefined', or 'custom'.
    """

    def __init__(self, text: str, existing_id: str, conflict_type: str) -> None:
        self.text = text
        self.existing_id = existing_id
        self.conflict_type = conflict_type
        role = "the name" if conflict_type == "name" else f"a {conflict_type} synonym"
        super().__init__(f"'{text}' already exists as {role} of '{existing_id}'")


class InvalidSynonymError(SpecialtyMatchError):
    """Synonym or specialty name fails validation."""


class SpecialtyNotFoundError(SpecialtyMatchError, KeyError):
    """No catalog entry with the given id."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class MalformedObservationError(SpecialtyMatchError, ValueError):
    """An observation has an empty or whitespace-only specialty string."""


class PersistenceError(SpecialtyMatchError):
    """A write to the backing store did not durably persist."""


class SuggestionTimeoutError(SpecialtyMatchError):
    """Suggestion generation exceeded its time budget."""


class SuggestionCancelledError(SpecialtyMatchError):
    """Suggestion generation was cancelled by the caller."""
