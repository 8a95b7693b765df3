from __future__ import annotations

import logging
from functools import cached_property
from typing import Any, Optional, Tuple, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from ..custom_types import ArrayLike, Sample
from ._utils import _as_finite_1d, _check_finite, _check_probability
from .density import DensityEstimator, kde_density, select_kde_bandwidth
from .distributions import Distribution
from .entropy import (
    continuous_entropy,
    continuous_mode,
    detect_multimodality,
    discrete_entropy,
    discrete_sample_entropy,
)
from .support import (
    LATTICE_TOLERANCE_SCALE,
    SMOOTHING_ALPHA,
    classify_support,
    smoothed_frequencies,
)
from .bootstrap import (
    BootstrapEstimate,
    BootstrapMethod,
    bootstrap_one_sample,
    bootstrap_two_sample,
    two_sample_method,
)

if TYPE_CHECKING:
    from .divergence import KLDivergenceOptions

__all__ = [
    "EmpiricalDistribution",
]

logger = logging.getLogger(__name__)


class EmpiricalDistribution(Distribution):
    """
    Univariate distribution backed by a finite set of observations.

    On construction the sample is sorted, collapsed into unique support
    points with multiplicities, and classified as discrete (lattice) or
    continuous. Discrete samples place Laplace-smoothed mass
    ``(count + 0.5) / (N + 0.5 U)`` on their support points; continuous
    samples answer density queries with a Gaussian KDE and CDF/quantile
    queries from the order statistics.

    Moments (mean, variance, skewness, kurtosis) are computed from the unique
    values and smoothed probabilities at construction. Mode, entropy and the
    multimodality flag need density estimation and are computed on first use,
    then cached.

    Attributes:
        n (int): Number of observations.
        samples (NDArray): Observations sorted ascending, shape (n,).
        unique_values (NDArray): Distinct support points, ascending.
        counts (NDArray): Multiplicity per unique support point.
    """

    def __init__(
        self,
        samples: ArrayLike,
        *,
        rng: Optional[np.random.Generator] = None,
    ):
        """Creates an empirical distribution from a finite sample.

        Args:
            samples (ArrayLike): Observations, shape (n,) or (n, 1).
            rng (Optional[np.random.Generator]): Generator used by
                :meth:`sample` and the bootstrap estimates. If ``None``, a
                default generator is created.

        Raises:
            ValueError: If the sample is empty or contains NaN or infinite values.
        """
        x = np.sort(_as_finite_1d(samples, "samples"))
        x.setflags(write=False)
        self._x = x
        self._n = int(x.shape[0])
        self._rng = rng or np.random.default_rng()

        uniq, counts = np.unique(x, return_counts=True)
        uniq.setflags(write=False)
        counts.setflags(write=False)
        self._unique = uniq
        self._counts = counts

        classification = classify_support(uniq, self._n, LATTICE_TOLERANCE_SCALE)
        self._classification = classification
        logger.debug(
            "classified sample of %d (%d unique) as %s",
            self._n,
            uniq.shape[0],
            "discrete" if classification.is_discrete else "continuous",
        )

        # Mean/variance/skewness/kurtosis from unique values and smoothed probabilities.
        probs = smoothed_frequencies(counts, self._n, SMOOTHING_ALPHA)
        probs.setflags(write=False)
        self._probs = probs
        self._cumulative = np.minimum(np.cumsum(probs), 1.0)
        self._mean = float(np.sum(uniq * probs))
        diff = uniq - self._mean
        m2 = float(np.sum(probs * diff ** 2))
        m3 = float(np.sum(probs * diff ** 3))
        m4 = float(np.sum(probs * diff ** 4))
        self._var = m2
        if m2 > 0:
            sigma = np.sqrt(m2)
            self._skewness: Optional[float] = m3 / sigma ** 3
            self._kurtosis: Optional[float] = m4 / sigma ** 4
        else:
            self._skewness = None
            self._kurtosis = None

        self._median = self._weighted_quantile(0.5)

    # --------------------------- views ---------------------------

    @property
    def n(self) -> int:
        """int: Number of stored observations."""
        return self._n

    @property
    def samples(self) -> Sample:
        """NDArray: Observations sorted ascending, shape (n,)."""
        return self._x

    @property
    def unique_values(self) -> NDArray:
        """NDArray: Distinct support points, ascending."""
        return self._unique

    @property
    def counts(self) -> NDArray:
        """NDArray: Multiplicity per unique support point."""
        return self._counts

    @property
    def probabilities(self) -> NDArray:
        """NDArray: Smoothed probabilities aligned with :attr:`unique_values`."""
        return self._probs

    @property
    def range(self) -> Tuple[float, float]:
        """Tuple[float, float]: ``(min, max)`` of the observations."""
        return float(self._x[0]), float(self._x[-1])

    # --------------------------- support ---------------------------

    @property
    def support_lower_bound(self) -> float:
        return float(self._x[0])

    @property
    def support_upper_bound(self) -> float:
        return float(self._x[-1])

    @property
    def is_discrete(self) -> bool:
        return self._classification.is_discrete

    @property
    def lattice_step(self) -> Optional[float]:
        return self._classification.lattice_step

    @property
    def lattice_origin(self) -> Optional[float]:
        return self._classification.lattice_origin

    @cached_property
    def is_likely_multimodal(self) -> bool:
        """bool: Peak-count heuristic on the smoothed PMF or a KDE grid."""
        return detect_multimodality(self._x, self.is_discrete)

    @cached_property
    def bandwidth(self) -> float:
        """float: KDE bandwidth selected for this sample."""
        return select_kde_bandwidth(self._x)

    # ------------------------ core functions ------------------------

    def pdf(self, x: float) -> float:
        """Smoothed mass at a support point (discrete) or KDE density (continuous).

        Raises:
            ValueError: If `x` is NaN or infinite.
        """
        x = _check_finite(x)
        if self.is_discrete:
            idx = int(np.searchsorted(self._unique, x))
            if idx < self._unique.shape[0] and self._unique[idx] == x:
                return float(self.probabilities[idx])
            return 0.0
        return kde_density(self._x, x, self.bandwidth)

    def cdf(self, x: float) -> float:
        """F(x) from cumulative smoothed mass (discrete) or ranks (continuous).

        Raises:
            ValueError: If `x` is NaN.
        """
        x = float(x)
        if np.isnan(x):
            raise ValueError("x must not be NaN.")
        if x < self._x[0]:
            return 0.0
        if x >= self._x[-1]:
            return 1.0
        if self.is_discrete:
            upto = int(np.searchsorted(self._unique, x, side="right"))
            return float(self._cumulative[upto - 1])
        return float(np.searchsorted(self._x, x, side="right")) / self._n

    def quantile(self, p: float) -> float:
        """Smallest support value with F >= p (discrete) or interpolated order statistic.

        Raises:
            ValueError: If `p` lies outside [0, 1].
        """
        p = _check_probability(p)
        if p == 0:
            return float(self._x[0])
        if p == 1:
            return float(self._x[-1])
        if self.is_discrete:
            return self._weighted_quantile(p)
        position = (self._n - 1) * p
        lower = int(np.floor(position))
        upper = min(self._n - 1, lower + 1)
        if lower == upper:
            return float(self._x[lower])
        fraction = position - lower
        return float(self._x[lower] * (1 - fraction) + self._x[upper] * fraction)

    def _weighted_quantile(self, p: float) -> float:
        idx = int(np.searchsorted(self._cumulative, p, side="left"))
        if idx >= self._unique.shape[0]:
            return float(self._unique[-1])
        return float(self._unique[idx])

    # ------------------------ summary statistics ------------------------

    def mean(self) -> float:
        """Smoothed mean."""
        return self._mean

    def var(self) -> float:
        """Smoothed population variance."""
        return self._var

    def skewness(self) -> Optional[float]:
        return self._skewness

    def kurtosis(self) -> Optional[float]:
        return self._kurtosis

    def median(self) -> float:
        return self._median

    def mode(self) -> Optional[float]:
        """Most probable support point (discrete) or sample point of maximal KDE density."""
        return self._mode

    @cached_property
    def _mode(self) -> Optional[float]:
        if self.is_discrete:
            # argmax returns the first maximum, i.e. the smallest tied value.
            return float(self._unique[int(np.argmax(self.probabilities))])
        return continuous_mode(self._x)

    def entropy(self) -> Optional[float]:
        """Entropy in nats: Miller-Madow plug-in (discrete), KNN with KDE fallback (continuous)."""
        return self._entropy

    @cached_property
    def _entropy(self) -> float:
        if self.is_discrete:
            return discrete_entropy(self.probabilities, self._unique.shape[0], self._n)
        return continuous_entropy(self._x)

    # ----------------------------- sampling -----------------------------

    def sample(self, n_samples: int, *, replace: bool = True) -> Sample:
        """Resamples stored observations uniformly.

        Args:
            n_samples (int): Number of draws to generate.
            replace (bool): Whether to sample with replacement. Defaults to True.

        Returns:
            NDArray: Draws of shape (n_samples,).

        Raises:
            ValueError: If ``replace=False`` and ``n_samples > n``.
        """
        n_samples = int(n_samples)
        if not replace and n_samples > self._n:
            raise ValueError("Cannot sample more than n without replacement.")
        idx = self._rng.choice(self._n, size=n_samples, replace=replace)
        return self._x[idx]

    rvs = sample

    @classmethod
    def from_distribution(
        cls,
        convert_from: Distribution,
        **fit_kwargs: Any,
    ) -> 'EmpiricalDistribution':
        """Constructs an empirical distribution from draws of another distribution.

        Args:
            convert_from (Distribution): Source distribution to sample from.
            **fit_kwargs: Optional keyword arguments, such as
                ``num_samples`` (int, default 2048) and ``rng``.

        Returns:
            EmpiricalDistribution: New instance containing sampled points.
        """
        samples = convert_from.sample(fit_kwargs.get("num_samples", 2048))
        return cls(samples, rng=fit_kwargs.get("rng"))

    # ---------------------------- divergence ----------------------------

    def kl_divergence(
        self,
        other: Distribution,
        options: Optional['KLDivergenceOptions'] = None,
        *,
        estimator: Optional[DensityEstimator] = None,
    ) -> Optional[float]:
        """KL divergence D_KL(self || other) in nats.

        Against another :class:`EmpiricalDistribution` the nonparametric
        estimators are used (smoothed frequency tables when either side is
        discrete, `estimator` otherwise). Against any other distribution the
        numerical integration/summation path runs with `options`.

        Returns:
            Optional[float]: The divergence, ``inf`` when divergent, ``None``
            when undefined.
        """
        from .divergence import KLDivergenceOptions, kl_divergence

        if isinstance(other, EmpiricalDistribution):
            return kl_divergence(self, other, estimator=estimator)
        if options is None:
            options = KLDivergenceOptions.for_distribution(self)
        return kl_divergence(self, other, options)

    # ----------------------------- bootstrap -----------------------------

    def entropy_estimate(
        self,
        estimator: Optional[DensityEstimator] = None,
        bootstrap_samples: int = 200,
        confidence_level: float = 0.95,
        method: BootstrapMethod | str = BootstrapMethod.PERCENTILE,
        *,
        n_jobs: int = 1,
    ) -> BootstrapEstimate:
        """Bootstrap confidence interval for the entropy.

        Discrete samples re-estimate the Miller-Madow entropy on each
        resample. Continuous samples use `estimator`: ``automatic`` and
        ``knn`` prefer KNN and fall back to KDE, ``kde_gaussian`` uses KDE.

        Args:
            estimator: Density estimator for continuous data.
            bootstrap_samples: Number of resamples; no interval unless > 1.
            confidence_level: Coverage in (0, 1).
            method: ``"percentile"`` or ``"bca"``.
            n_jobs: Worker threads for the replicates.

        Returns:
            BootstrapEstimate: Point estimate and interval (``None`` if not computable).
        """
        estimator = estimator or DensityEstimator.automatic()
        method = BootstrapMethod(method)

        if self.is_discrete:
            point = self.entropy()
            stat = discrete_sample_entropy
        elif estimator.kind == "automatic":
            point = self.entropy()
            stat = continuous_entropy
        else:
            point = continuous_entropy(self._x, estimator)

            def stat(sample: Sample) -> float:
                return continuous_entropy(sample, estimator)

        interval = bootstrap_one_sample(
            self._x,
            stat,
            bootstrap_samples,
            confidence_level,
            method,
            rng=self._rng,
            n_jobs=n_jobs,
        )
        return BootstrapEstimate(point, interval, int(bootstrap_samples), method)

    def kl_divergence_estimate(
        self,
        other: 'EmpiricalDistribution',
        estimator: Optional[DensityEstimator] = None,
        bootstrap_samples: int = 200,
        confidence_level: float = 0.95,
        method: BootstrapMethod | str = BootstrapMethod.PERCENTILE,
        *,
        n_jobs: int = 1,
    ) -> Optional[BootstrapEstimate]:
        """Bootstrap confidence interval for the KL divergence to another sample.

        Replicates keep the estimation path of the original pair: frequency
        tables when either sample is discrete, `estimator` otherwise. A BCa
        request falls back to the percentile interval (no two-sample
        jackknife); the returned estimate records the method used.

        Returns:
            Optional[BootstrapEstimate]: ``None`` when the divergence itself
            is undefined.
        """
        from .divergence import kl_divergence, sample_kl_divergence

        point = kl_divergence(self, other, estimator=estimator)
        if point is None:
            return None
        discrete = self.is_discrete or other.is_discrete

        def stat(sample_p: Sample, sample_q: Sample) -> Optional[float]:
            return sample_kl_divergence(sample_p, sample_q, discrete=discrete, estimator=estimator)

        interval = bootstrap_two_sample(
            self._x,
            other.samples,
            stat,
            bootstrap_samples,
            confidence_level,
            method,
            rng=self._rng,
            n_jobs=n_jobs,
        )
        return BootstrapEstimate(point, interval, int(bootstrap_samples), two_sample_method(method))

    def __repr__(self) -> str:
        kind = "discrete" if self.is_discrete else "continuous"
        return f"EmpiricalDistribution(n={self._n}, {kind})"
