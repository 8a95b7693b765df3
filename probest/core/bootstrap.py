"""Generic one- and two-sample bootstrap with percentile and BCa intervals.

The drivers resample the data with replacement, apply an arbitrary scalar
estimator to each resample and read confidence limits off the sorted
replicates. BCa intervals add a bias term from the share of replicates below
the original estimate and an acceleration term from jackknife replicates.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import numpy as np
from numpy.typing import NDArray
from scipy.special import ndtr, ndtri

from ..custom_types import (
    PRNG,
    ArrayLike,
    Interval,
    OneSampleEstimator,
    TwoSampleEstimator,
)
from ._utils import TINY, _interpolated_quantile

__all__ = [
    "BootstrapMethod",
    "BootstrapEstimate",
    "BootstrapDistribution",
    "bootstrap_one_sample",
    "bootstrap_two_sample",
    "jackknife_replicates",
    "acceleration_coefficient",
    "two_sample_method",
]

logger = logging.getLogger(__name__)


class BootstrapMethod(str, Enum):
    """Bootstrap interval type."""

    PERCENTILE = "percentile"
    BCA = "bca"


@dataclass(frozen=True)
class BootstrapEstimate:
    """A point estimate with an optional bootstrap confidence interval.

    Attributes:
        value: Estimate computed on the original data.
        confidence_interval: ``(lower, upper)`` or ``None`` when not computable.
        replicates: Number of bootstrap resamples requested.
        method: Interval method actually used.
    """

    value: float
    confidence_interval: Optional[Interval]
    replicates: int
    method: BootstrapMethod


def _as_float(value: Optional[float]) -> float:
    return np.nan if value is None else float(value)


# ------------------------------ replicates ------------------------------


def _draw_one_sample(
    data: NDArray[np.floating],
    estimator: OneSampleEstimator,
    count: int,
    rng: PRNG,
) -> List[float]:
    n = data.shape[0]
    out = []
    for _ in range(count):
        idx = rng.integers(0, n, size=n)  # sample n rows with replacement
        out.append(_as_float(estimator(data[idx])))
    return out


def _draw_two_sample(
    data_p: NDArray[np.floating],
    data_q: NDArray[np.floating],
    estimator: TwoSampleEstimator,
    count: int,
    rng: PRNG,
) -> List[float]:
    n, m = data_p.shape[0], data_q.shape[0]
    out = []
    for _ in range(count):
        idx_p = rng.integers(0, n, size=n)
        idx_q = rng.integers(0, m, size=m)
        out.append(_as_float(estimator(data_p[idx_p], data_q[idx_q])))
    return out


def _run_replicates(draw: Callable[[int, PRNG], List[float]], B: int, rng: PRNG, n_jobs: int) -> NDArray[np.floating]:
    """Runs `B` replicates sequentially or split over a thread pool.

    With ``n_jobs > 1`` each worker gets its own generator spawned from a
    SeedSequence seeded by `rng`, so draws are independent across workers
    and reproducible for a fixed seed and worker count.
    """
    n_jobs = max(1, min(int(n_jobs), B))
    if n_jobs == 1:
        return np.asarray(draw(B, rng), dtype=float)

    seed_seq = np.random.SeedSequence(rng.integers(0, 2**63 - 1, size=4))
    streams = [np.random.default_rng(child) for child in seed_seq.spawn(n_jobs)]
    chunks = [len(c) for c in np.array_split(np.arange(B), n_jobs)]
    with ThreadPoolExecutor(max_workers=n_jobs) as pool:
        futures = [pool.submit(draw, size, stream) for size, stream in zip(chunks, streams)]
        results = [f.result() for f in futures]
    return np.asarray([v for chunk in results for v in chunk], dtype=float)


def jackknife_replicates(data: ArrayLike, estimator: OneSampleEstimator) -> NDArray[np.floating]:
    """Leave-one-out replicates ``estimator(data without observation i)``."""
    x = np.asarray(data, dtype=float).reshape(-1)
    mask = np.ones(x.shape[0], dtype=bool)
    out = np.empty(x.shape[0], dtype=float)
    for i in range(x.shape[0]):
        mask[i] = False
        out[i] = _as_float(estimator(x[mask]))
        mask[i] = True
    return out


def acceleration_coefficient(jackknife: ArrayLike) -> float:
    """BCa acceleration ``sum(d^3) / (6 * sum(d^2)^1.5)`` with ``d = mean - theta_i``.

    Non-finite jackknife values are ignored; returns 0 when undefined.
    """
    theta = np.asarray(jackknife, dtype=float).reshape(-1)
    theta = theta[np.isfinite(theta)]
    if theta.size == 0:
        return 0.0
    d = theta.mean() - theta
    denominator = float(np.sum(d * d))
    if denominator == 0:
        return 0.0
    return float(np.sum(d * d * d) / (6.0 * denominator ** 1.5))


# ------------------------------ container ------------------------------


class BootstrapDistribution:
    """
    Empirical distribution over scalar bootstrap replicates of a statistic.

    Holds the sorted finite replicates and turns them into percentile or BCa
    confidence intervals. Non-finite replicates (an estimator that was
    undefined on a resample) are dropped at construction.

    Attributes:
        replicates (NDArray): Sorted finite replicates, shape (B,).
        original (float): Estimate on the original data.
    """

    def __init__(self, replicates: ArrayLike, original: float):
        theta = np.asarray(replicates, dtype=float).reshape(-1)
        finite = theta[np.isfinite(theta)]
        if finite.shape[0] < theta.shape[0]:
            logger.debug("dropped %d non-finite bootstrap replicates", theta.shape[0] - finite.shape[0])
        self._theta = np.sort(finite)
        self.original = float(original)

    @property
    def replicates(self) -> NDArray[np.floating]:
        return self._theta

    @property
    def n(self) -> int:
        """int: Number of finite replicates."""
        return int(self._theta.shape[0])

    def mean(self) -> float:
        return float(self._theta.mean())

    def var(self) -> float:
        """Population variance of the replicates."""
        return float(self._theta.var())

    def std(self) -> float:
        return float(np.sqrt(max(self.var(), 0.0)))

    def quantile(self, p: float) -> float:
        """Linear-interpolation quantile of the replicates."""
        return _interpolated_quantile(self._theta, p)

    def percentile_interval(self, confidence_level: float) -> Optional[Interval]:
        """``(alpha, 1 - alpha)`` replicate quantiles with ``alpha = (1 - c) / 2``."""
        if self.n < 2:
            return None
        alpha = (1.0 - confidence_level) / 2.0
        return self.quantile(alpha), self.quantile(1.0 - alpha)

    def bias_correction(self) -> float:
        """``z0 = Phi^-1(#{theta* < theta_hat} / B)``.

        The proportion is kept inside ``[0.5/B, 1 - 0.5/B]`` so that `z0`
        stays finite when every replicate falls on one side.
        """
        b = self.n
        share = float(np.sum(self._theta < self.original)) / b
        share = min(max(share, 0.5 / b), 1.0 - 0.5 / b)
        return float(ndtri(share))

    def bca_interval(self, confidence_level: float, acceleration: float) -> Optional[Interval]:
        """BCa interval given a jackknife acceleration."""
        if self.n < 2:
            return None
        alpha = (1.0 - confidence_level) / 2.0
        z0 = self.bias_correction()

        def adjusted(tail: float) -> float:
            z = float(ndtri(tail))
            shifted = z0 + z
            denom = max(1.0 - acceleration * shifted, TINY)
            return self.quantile(float(ndtr(z0 + shifted / denom)))

        return adjusted(alpha), adjusted(1.0 - alpha)

    @classmethod
    def from_data(
        cls,
        data: ArrayLike,
        stat_fn: OneSampleEstimator,
        *,
        B: int = 1000,
        rng: PRNG | None = None,
        n_jobs: int = 1,
    ) -> BootstrapDistribution:
        """
        Classic i.i.d. bootstrap for a scalar statistic.

        Parameters
        ----------
        data : array-like
            Observations, shape (n,).
        stat_fn : callable
            Maps a resampled array to a float (``None`` counts as undefined).
        B : int
            Number of bootstrap replicates.
        rng : np.random.Generator, optional
            RNG for resampling indices.
        n_jobs : int
            Worker threads; 1 runs sequentially on `rng`.

        Returns
        -------
        BootstrapDistribution
            Container of the replicates and the original estimate.
        """
        rng = rng or np.random.default_rng()
        x = np.asarray(data, dtype=float).reshape(-1)
        original = _as_float(stat_fn(x))
        theta = _run_replicates(lambda count, r: _draw_one_sample(x, stat_fn, count, r), int(B), rng, n_jobs)
        return cls(theta, original)

    @classmethod
    def from_two_samples(
        cls,
        data_p: ArrayLike,
        data_q: ArrayLike,
        stat_fn: TwoSampleEstimator,
        *,
        B: int = 1000,
        rng: PRNG | None = None,
        n_jobs: int = 1,
    ) -> BootstrapDistribution:
        """Bootstrap of a two-sample statistic; both samples are resampled per replicate."""
        rng = rng or np.random.default_rng()
        p = np.asarray(data_p, dtype=float).reshape(-1)
        q = np.asarray(data_q, dtype=float).reshape(-1)
        original = _as_float(stat_fn(p, q))
        theta = _run_replicates(lambda count, r: _draw_two_sample(p, q, stat_fn, count, r), int(B), rng, n_jobs)
        return cls(theta, original)


# ------------------------------ drivers ------------------------------


def bootstrap_one_sample(
    data: ArrayLike,
    estimator: OneSampleEstimator,
    bootstrap_samples: int,
    confidence_level: float = 0.95,
    method: BootstrapMethod | str = BootstrapMethod.PERCENTILE,
    *,
    rng: PRNG | None = None,
    n_jobs: int = 1,
) -> Optional[Interval]:
    """Confidence interval for a one-sample scalar estimator.

    Args:
        data: Observations, shape (n,).
        estimator: Maps a sample to a float; may rebuild whole distributions.
        bootstrap_samples: Number of resamples B. Must exceed 1.
        confidence_level: Coverage in (0, 1).
        method: ``"percentile"`` or ``"bca"``. BCa computes the jackknife
            acceleration from `data`.
        rng: Generator for resampling.
        n_jobs: Worker threads for the replicates.

    Returns:
        Optional[Interval]: ``(lower, upper)``, or ``None`` when
        ``bootstrap_samples <= 1`` or fewer than two replicates are finite.
    """
    if bootstrap_samples <= 1:
        return None
    method = BootstrapMethod(method)
    boot = BootstrapDistribution.from_data(data, estimator, B=bootstrap_samples, rng=rng, n_jobs=n_jobs)
    if method is BootstrapMethod.PERCENTILE:
        return boot.percentile_interval(confidence_level)
    acceleration = acceleration_coefficient(jackknife_replicates(data, estimator))
    return boot.bca_interval(confidence_level, acceleration)


def bootstrap_two_sample(
    data_p: ArrayLike,
    data_q: ArrayLike,
    estimator: TwoSampleEstimator,
    bootstrap_samples: int,
    confidence_level: float = 0.95,
    method: BootstrapMethod | str = BootstrapMethod.PERCENTILE,
    *,
    rng: PRNG | None = None,
    n_jobs: int = 1,
) -> Optional[Interval]:
    """Confidence interval for a two-sample scalar estimator.

    Both samples are resampled independently within each replicate. There is
    no two-sample jackknife, so a BCa request is served with the percentile
    interval.

    Returns:
        Optional[Interval]: ``(lower, upper)``, or ``None`` when
        ``bootstrap_samples <= 1`` or fewer than two replicates are finite.
    """
    if bootstrap_samples <= 1:
        return None
    if BootstrapMethod(method) is BootstrapMethod.BCA:
        logger.info("BCa is not available for two-sample bootstrap; using percentile interval")
    boot = BootstrapDistribution.from_two_samples(
        data_p, data_q, estimator, B=bootstrap_samples, rng=rng, n_jobs=n_jobs
    )
    return boot.percentile_interval(confidence_level)


def two_sample_method(method: BootstrapMethod | str) -> BootstrapMethod:
    """Interval method a two-sample bootstrap actually uses for a requested `method`."""
    return BootstrapMethod.PERCENTILE if BootstrapMethod(method) is BootstrapMethod.BCA else BootstrapMethod(method)
