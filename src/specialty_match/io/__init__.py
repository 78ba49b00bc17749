"""Observation CSV reader using pandas."""

from specialty_match.io.observations import read_observations_csv

__all__ = ["read_observations_csv"]
