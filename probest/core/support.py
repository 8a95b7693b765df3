"""Support classification and smoothed frequency tables for finite samples.

A sample is classified as discrete (lattice) or continuous without the
caller having to declare it. Discrete samples are then described by their
unique support points and Laplace-smoothed relative frequencies.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from ..custom_types import ArrayLike
from ._utils import _unique_with_counts

__all__ = [
    "SMOOTHING_ALPHA",
    "LATTICE_TOLERANCE_SCALE",
    "DUPLICATE_FRACTION_THRESHOLD",
    "SupportClassification",
    "classify_support",
    "smoothed_frequencies",
    "smoothed_probability",
    "frequency_table",
]

SMOOTHING_ALPHA = 0.5
LATTICE_TOLERANCE_SCALE = 1e-6
DUPLICATE_FRACTION_THRESHOLD = 0.25


@dataclass(frozen=True)
class SupportClassification:
    """Outcome of :func:`classify_support`.

    Attributes:
        is_discrete: Whether the sample is treated as discrete.
        lattice_step: Lattice spacing; only set for discrete samples with a
            consistent spacing.
        lattice_origin: Smallest support point for discrete samples.
    """

    is_discrete: bool
    lattice_step: Optional[float] = None
    lattice_origin: Optional[float] = None


def classify_support(
    values: ArrayLike,
    total_count: int,
    tolerance_scale: float = LATTICE_TOLERANCE_SCALE,
) -> SupportClassification:
    """Decides whether a sample is discrete (lattice) or continuous.

    Args:
        values: Unique support points, ascending.
        total_count: Number of observations including duplicates.
        tolerance_scale: Relative tolerance on gap ratios. Defaults to 1e-6.

    Returns:
        SupportClassification: Discreteness plus lattice step/origin.

    Notes:
        - A single (or no) unique value is discrete.
        - All-unique samples are continuous.
        - Otherwise every positive gap must be an integer multiple of the
          smallest gap (within tolerance) for a lattice. Failing that, a
          duplicate fraction above 0.25 still yields "discrete, unknown step".
    """
    v = np.asarray(values, dtype=float).reshape(-1)
    unique_count = v.shape[0]
    if unique_count == 0:
        return SupportClassification(True)
    if unique_count == 1:
        return SupportClassification(True, None, float(v[0]))
    if unique_count == total_count:
        return SupportClassification(False)

    gaps = np.diff(v)
    gaps = gaps[gaps > 0]
    if gaps.size == 0:
        return SupportClassification(True, None, float(v[0]))
    min_gap = float(gaps.min())

    tolerance = max(tolerance_scale * min_gap, 4.0 * np.finfo(float).eps)
    ratios = gaps / min_gap
    if np.all(np.abs(ratios - np.round(ratios)) <= tolerance):
        return SupportClassification(True, min_gap, float(v[0]))

    duplicate_fraction = 1.0 - unique_count / max(total_count, 1)
    if duplicate_fraction > DUPLICATE_FRACTION_THRESHOLD:
        return SupportClassification(True, None, float(v[0]))

    return SupportClassification(False)


def smoothed_frequencies(
    counts: ArrayLike,
    total: Optional[int] = None,
    alpha: float = SMOOTHING_ALPHA,
) -> NDArray[np.floating]:
    """Converts multiplicities into Laplace-smoothed probabilities.

    ``p_i = (count_i + alpha) / (N + alpha * U)`` with ``U = len(counts)``.

    Args:
        counts: Multiplicity per unique support point.
        total: Sample size N. Defaults to ``sum(counts)``.
        alpha: Additive smoothing constant. Defaults to 0.5.

    Returns:
        NDArray: Probabilities aligned with `counts`, summing to one.
    """
    c = np.asarray(counts, dtype=float).reshape(-1)
    n = float(c.sum()) if total is None else float(total)
    denominator = n + alpha * c.shape[0]
    return (c + alpha) / denominator


def smoothed_probability(
    value: float,
    unique_values: NDArray[np.floating],
    counts: NDArray[np.integer],
    alpha: float = SMOOTHING_ALPHA,
) -> float:
    """Smoothed probability of `value` under a frequency table.

    Values that are not support points receive the pseudo-count mass
    ``alpha / (N + alpha * U)``.
    """
    total = float(np.sum(counts))
    denominator = total + alpha * len(unique_values)
    idx = int(np.searchsorted(unique_values, value))
    if idx < len(unique_values) and unique_values[idx] == value:
        return (float(counts[idx]) + alpha) / denominator
    return alpha / denominator


def frequency_table(sample: ArrayLike):
    """Unique values, counts and smoothed probabilities of a raw sample."""
    uniq, counts = _unique_with_counts(sample)
    return uniq, counts, smoothed_frequencies(counts, int(counts.sum()))
