"""Persisted mapping outcomes: mapped groups and per-survey mappings."""

from specialty_match.mapping.groups import GROUPS_KEY, MappedGroupStore
from specialty_match.mapping.repository import SpecialtyMappingStore

__all__ = ["GROUPS_KEY", "MappedGroupStore", "SpecialtyMappingStore"]
