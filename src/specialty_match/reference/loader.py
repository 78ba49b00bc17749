"""Bundled reference data: the seed specialty catalog and matching tables.

All data is loaded from JSON files shipped in the package ``data`` directory
(or an override directory) -- no network calls.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from specialty_match.models.config import MatchingConfig
from specialty_match.models.specialty import (
    Specialty,
    SpecialtyMetadata,
    SpecialtySource,
    SynonymSet,
)

_DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"

CATALOG_FILE = "specialties.json"
MATCHING_CONFIG_FILE = "matching_config.json"


def _read_json(path: Path) -> dict:
    if not path.exists():
        msg = f"Reference data file not found at {path}"
        raise FileNotFoundError(msg)
    with open(path) as f:
        return json.load(f)


def load_matching_config(data_dir: str | Path | None = None) -> MatchingConfig:
    """Load the domain and equivalence-group tables.

    Args:
        data_dir: Directory holding matching_config.json. Defaults to the
            packaged data directory.

    Returns:
        Validated MatchingConfig.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    base = Path(data_dir) if data_dir else _DEFAULT_DATA_DIR
    config = MatchingConfig.model_validate(_read_json(base / MATCHING_CONFIG_FILE))
    logger.debug(
        "Loaded matching config v{}: {} domains, {} equivalence groups",
        config.version,
        len(config.domains),
        len(config.equivalence_groups),
    )
    return config


def load_seed_catalog(data_dir: str | Path | None = None) -> list[Specialty]:
    """Load the predefined specialty catalog.

    Entries without an explicit id get a slug of their name. Synonyms from
    the file are marked predefined.

    Args:
        data_dir: Directory holding specialties.json. Defaults to the
            packaged data directory.

    Returns:
        Specialties in file order.

    Raises:
        FileNotFoundError: If the catalog file does not exist.
    """
    base = Path(data_dir) if data_dir else _DEFAULT_DATA_DIR
    raw = _read_json(base / CATALOG_FILE)

    specialties: list[Specialty] = []
    for entry in raw.get("specialties", []):
        name = entry["name"]
        specialties.append(
            Specialty(
                id=entry.get("id") or slugify(name),
                name=name,
                category=entry.get("category"),
                synonyms=SynonymSet(predefined=list(entry.get("synonyms", []))),
                metadata=SpecialtyMetadata(source=SpecialtySource.PREDEFINED),
            )
        )
    logger.info("Loaded {} seed specialties from {}", len(specialties), base)
    return specialties


def slugify(name: str) -> str:
    """Turn a display name into an id like 'physical-medicine-and-rehabilitation'."""
    out: list[str] = []
    prev_dash = False
    for ch in name.lower().replace("&", " and "):
        if ch.isalnum():
            out.append(ch)
            prev_dash = False
        elif not prev_dash:
            out.append("-")
            prev_dash = True
    return "".join(out).strip("-")
