"""Exception hierarchy.

Everything is rooted at LMIAError so callers can catch broadly or narrowly.

HTTP mapping used by api/main.py:
  MalformedBounds   -> 400
  DataUnavailable   -> empty 200 response (never surfaced as an error)
  ClusteringTimeout -> handled internally, falls back to unclustered output
"""
from __future__ import annotations


class LMIAError(Exception):
    """Base exception for all application errors."""


class DataUnavailable(LMIAError):
    """Raised when a (year, quarter) dataset has no backing file or failed to load."""

    def __init__(self, year: int, quarter: str, reason: str = "no data file") -> None:
        super().__init__(f"No LMIA data for {year} {quarter}: {reason}")
        self.year = year
        self.quarter = quarter
        self.reason = reason


class MalformedBounds(LMIAError):
    """Raised when bounding-box parameters are missing, non-finite or inverted."""


class ClusteringTimeout(LMIAError):
    """Raised when offloaded clustering does not finish within its deadline."""
