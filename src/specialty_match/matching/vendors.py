"""Vendor name canonicalization."""

from __future__ import annotations

_VENDOR_ALIASES = {
    "mgma": "MGMA",
    "gallagher": "GALLAGHER",
    "sullivan": "SULLIVANCOTTER",
    "sullivancotter": "SULLIVANCOTTER",
    "sullivan cotter": "SULLIVANCOTTER",
    "sullivan-cotter": "SULLIVANCOTTER",
}


def normalize_vendor_name(vendor: str) -> str:
    """Map known vendor spellings to their display form, else upper-case.

    >>> normalize_vendor_name("Sullivan Cotter")
    'SULLIVANCOTTER'
    """
    cleaned = " ".join(vendor.split()).lower()
    return _VENDOR_ALIASES.get(cleaned, cleaned.upper())
