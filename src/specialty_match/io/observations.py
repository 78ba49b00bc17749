"""Observation reader for simple survey extracts.

Expects one row per (specialty, vendor) with optional percentile metric
columns named ``<metric>_<percentile>`` (e.g. ``tcc_p50``, ``wrvu_p90``,
``cf_p25``). Column names are matched case-insensitively.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd
from loguru import logger

from specialty_match.matching.vendors import normalize_vendor_name
from specialty_match.models.specialty import Observation, PercentileBundle, SpecialtyMetrics

METRICS = ("tcc", "wrvu", "cf")
PERCENTILES = ("p25", "p50", "p75", "p90")


def _bundle(row: pd.Series, metric: str) -> PercentileBundle | None:
    values: dict[str, float] = {}
    for pct in PERCENTILES:
        col = f"{metric}_{pct}"
        if col in row.index and pd.notna(row[col]):
            values[pct] = float(row[col])
    return PercentileBundle(**values) if values else None


def read_observations_csv(
    filepath: str | Path, vendor: str | None = None
) -> list[Observation]:
    """Read observations from a CSV file.

    Args:
        filepath: Path to the CSV.
        vendor: Vendor for every row; required when the file has no
            ``vendor`` column.

    Returns:
        Observations in file order. Blank specialties are kept as empty
        strings; the matching engine skips them.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If required columns are missing.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        msg = f"Observation file not found: {filepath}"
        raise FileNotFoundError(msg)

    df = pd.read_csv(filepath, dtype=str)
    df.columns = [str(c).strip().lower() for c in df.columns]
    for metric in METRICS:
        for pct in PERCENTILES:
            col = f"{metric}_{pct}"
            if col in df.columns:
                df[col] = pd.to_numeric(df[col], errors="coerce")

    if "specialty" not in df.columns:
        msg = f"{filepath.name} has no 'specialty' column"
        raise ValueError(msg)
    if "vendor" not in df.columns and vendor is None:
        msg = f"{filepath.name} has no 'vendor' column and no vendor was given"
        raise ValueError(msg)

    observations: list[Observation] = []
    for _, row in df.iterrows():
        specialty = row["specialty"] if pd.notna(row["specialty"]) else ""
        row_vendor = vendor or (row["vendor"] if pd.notna(row["vendor"]) else "")
        bundles = {metric: _bundle(row, metric) for metric in METRICS}
        metrics = SpecialtyMetrics(**bundles) if any(bundles.values()) else None
        observations.append(
            Observation(
                specialty=str(specialty).strip(),
                vendor=normalize_vendor_name(str(row_vendor)),
                metrics=metrics,
            )
        )

    logger.info("Read {} observations from {}", len(observations), filepath.name)
    return observations
