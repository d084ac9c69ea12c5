"""
Analysis module for audiometry results.

This module contains functions for:
- Scoring trainee thresholds against reference audiograms
- Technical error detection
- Tabular export of results
"""

from .results import (
    TestResult,
    calculate_results,
    extract_threshold_points,
    results_to_dataframe,
    thresholds_to_dataframe,
)

__all__ = [
    "TestResult",
    "calculate_results",
    "extract_threshold_points",
    "results_to_dataframe",
    "thresholds_to_dataframe",
]
