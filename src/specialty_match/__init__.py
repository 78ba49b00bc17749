"""Specialty name matching for compensation survey data."""

__version__ = "0.1.0"
