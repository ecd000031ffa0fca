"""Public interface for the extraction oracle adapter."""

from __future__ import annotations

from .client import HttpExtractionOracle, NullOracle, OracleResponseError

__all__ = ["HttpExtractionOracle", "NullOracle", "OracleResponseError"]
