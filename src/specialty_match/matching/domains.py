"""Coarse clinical domain tagging.

Names from different domains (cardiac vs orthopedic) can share generic words
such as "surgery"; the scorer uses these tags to refuse such matches.
"""

from __future__ import annotations

from specialty_match.models.config import DomainRule


class DomainClassifier:
    """Keyword-substring lookup over an ordered domain table."""

    def __init__(self, rules: list[DomainRule]) -> None:
        self._rules = [
            (rule.name, tuple(kw.lower() for kw in rule.keywords)) for rule in rules
        ]

    @property
    def domains(self) -> list[str]:
        return [name for name, _ in self._rules]

    def classify(self, normalized_name: str) -> str | None:
        """Return the first domain with a keyword inside the name, or None.

        Args:
            normalized_name: Output of ``normalize``.
        """
        for name, keywords in self._rules:
            if any(kw in normalized_name for kw in keywords):
                return name
        return None

    def conflict(self, a: str, b: str) -> tuple[str, str] | None:
        """Return both domains when the names belong to different ones."""
        da = self.classify(a)
        db = self.classify(b)
        if da is not None and db is not None and da != db:
            return da, db
        return None
