"""Entropy estimators for discrete and continuous samples.

Discrete samples use the plug-in estimator over smoothed frequencies with a
Miller-Madow correction. Continuous samples prefer the KNN estimator and
fall back to a leave-one-out KDE estimate when the sample is too small.
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from ..custom_types import ArrayLike
from ._utils import _compensated_sum
from .density import (
    KNN_DEFAULT_K,
    DensityEstimator,
    _distinct_values,
    _loo_densities,
    kde_density,
    knn_entropy,
    select_kde_bandwidth,
)
from .support import frequency_table, smoothed_frequencies

__all__ = [
    "discrete_entropy",
    "discrete_sample_entropy",
    "kde_entropy",
    "continuous_entropy",
    "continuous_mode",
    "detect_multimodality",
]

logger = logging.getLogger(__name__)

MULTIMODALITY_MIN_SAMPLES = 5
GRID_MIN, GRID_MAX, GRID_PER_SAMPLE = 16, 128, 6


def discrete_entropy(probabilities: ArrayLike, unique_count: int, sample_size: int) -> float:
    """Plug-in entropy with Miller-Madow correction.

    ``H = -sum p_i log p_i + (U - 1) / (2 N)``

    Args:
        probabilities: Smoothed probabilities over the unique support.
        unique_count: Number of unique support points U.
        sample_size: Number of observations N.
    """
    p = np.asarray(probabilities, dtype=float).reshape(-1)
    p = p[p > 0]
    h = -_compensated_sum(p * np.log(p))
    if sample_size > 0:
        h += (unique_count - 1) / (2.0 * sample_size)
    return h


def discrete_sample_entropy(sample: ArrayLike) -> float:
    """Miller-Madow entropy recomputed from a raw (re)sample."""
    uniq, counts, probs = frequency_table(sample)
    return discrete_entropy(probs, uniq.shape[0], int(counts.sum()))


def kde_entropy(samples: ArrayLike, bandwidth: Optional[float] = None) -> float:
    """Leave-one-out KDE entropy ``-(1/n) sum_i log f_{-i}(x_i)``.

    Like :func:`~probest.core.density.knn_entropy`, it runs on the distinct
    values of `samples`. Returns 0 for fewer than two distinct values.
    """
    xs = _distinct_values(samples)
    if xs.shape[0] <= 1:
        return 0.0
    h = select_kde_bandwidth(xs) if bandwidth is None else float(bandwidth)
    return float(-np.mean(np.log(_loo_densities(xs, h))))


def continuous_entropy(
    samples: ArrayLike,
    estimator: Optional[DensityEstimator] = None,
) -> float:
    """Differential entropy of a continuous sample in nats.

    ``automatic`` and ``knn`` use the KNN estimator (``k = 3`` for
    ``automatic``) and fall back to KDE when ``n <= k``; ``kde_gaussian``
    always uses the KDE estimator with the configured bandwidth.
    """
    estimator = estimator or DensityEstimator.automatic()
    if estimator.kind == "kde_gaussian":
        return kde_entropy(samples, estimator.bandwidth)
    k = KNN_DEFAULT_K if estimator.kind == "automatic" else estimator.k
    value = knn_entropy(samples, k)
    if value is None:
        logger.debug("KNN entropy needs n > k=%d; falling back to KDE", k)
        return kde_entropy(samples, None)
    return value


def continuous_mode(samples: ArrayLike) -> Optional[float]:
    """Sample point with the largest KDE density (first one on ties)."""
    xs = np.asarray(samples, dtype=float).reshape(-1)
    if xs.shape[0] == 0:
        return None
    bandwidth = select_kde_bandwidth(xs)
    density = kde_density(xs, xs, bandwidth)
    return float(xs[int(np.argmax(density))])


def _count_discrete_peaks(probabilities: NDArray[np.floating]) -> int:
    p = probabilities
    if p.shape[0] < 3:
        return 0
    mid = p[1:-1]
    return int(np.sum((mid >= p[:-2]) & (mid > p[2:])))


def detect_multimodality(samples: ArrayLike, is_discrete: bool) -> bool:
    """Heuristic multimodality flag.

    - Discrete: counts interior local maxima of the smoothed PMF (``>=`` the
      left neighbour, ``>`` the right one).
    - Continuous: evaluates the KDE on ``min(128, max(16, 6 n))`` evenly
      spaced points over the sample range and counts interior peaks.

    Samples with fewer than five points are never flagged.
    """
    xs = np.sort(np.asarray(samples, dtype=float).reshape(-1))
    n = xs.shape[0]
    if n < MULTIMODALITY_MIN_SAMPLES:
        return False
    if is_discrete:
        _, counts = np.unique(xs, return_counts=True)
        return _count_discrete_peaks(smoothed_frequencies(counts, n)) > 1

    lo, hi = float(xs[0]), float(xs[-1])
    if not hi > lo:
        return False
    bandwidth = select_kde_bandwidth(xs)
    grid_count = min(GRID_MAX, max(GRID_MIN, n * GRID_PER_SAMPLE))
    grid = np.linspace(lo, hi, grid_count)
    density = kde_density(xs, grid, bandwidth)
    mid = density[1:-1]
    peaks = int(np.sum((mid > density[:-2]) & (mid > density[2:])))
    return peaks > 1
