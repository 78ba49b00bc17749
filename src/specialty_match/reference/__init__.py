"""Bundled reference data loaders."""

from specialty_match.reference.loader import (
    load_matching_config,
    load_seed_catalog,
    slugify,
)

__all__ = ["load_matching_config", "load_seed_catalog", "slugify"]
