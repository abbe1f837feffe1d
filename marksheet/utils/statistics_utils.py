"""Utility functions for calculating statistics."""

import statistics
from typing import Sequence


def calculate_statistics(data: Sequence[float]) -> dict[str, float | None]:
    """
    Calculate basic statistics for a dataset.

    Values are returned unrounded; presentation layers round for display.

    Args:
        data: Sequence of numeric values

    Returns:
        Dictionary with mean, median, min, max, std_deviation (all None for empty data)
    """
    if not data:
        return {
            "mean": None,
            "median": None,
            "min": None,
            "max": None,
            "std_deviation": None,
        }

    return {
        "mean": statistics.fmean(data),
        "median": statistics.median(data),
        "min": min(data),
        "max": max(data),
        "std_deviation": statistics.stdev(data) if len(data) > 1 else 0.0,
    }


def calculate_rate(count: int, total: int) -> float | None:
    """Percentage of count in total, None when total is zero."""
    if total == 0:
        return None
    return count / total * 100
