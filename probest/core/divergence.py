"""Kullback-Leibler divergence between arbitrary univariate distributions.

:func:`kl_divergence` dispatches, in order, to

1. nonparametric estimators when both sides are sample-backed,
2. a closed form when both sides are Normal with extractable parameters
   (only when no explicit integration bounds were requested),
3. numerical integration over the shared continuous support, or
4. summation over the shared integer support for discrete distributions.

Results are in nats. ``None`` means undefined (mismatched discreteness,
empty shared support, non-finite result); ``inf`` means the divergence is
infinite because Q vanishes where P has mass.
"""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple

import numpy as np
from numpy.polynomial.hermite import hermgauss
from numpy.polynomial.laguerre import laggauss
from numpy.typing import NDArray
from scipy.integrate import IntegrationWarning, fixed_quad, quad

from ..custom_types import ArrayLike
from ._utils import TINY, _compensated_sum
from .density import (
    DensityEstimator,
    _distinct_values,
    kde_density,
    kth_neighbor_distances,
    select_kde_bandwidth,
)
from .distributions import Distribution
from .empirical import EmpiricalDistribution
from .support import SMOOTHING_ALPHA, frequency_table, smoothed_probability

__all__ = [
    "QUADRATURE_RULES",
    "KLDivergenceOptions",
    "kl_divergence",
    "normal_kl_divergence",
    "discrete_sample_kl_divergence",
    "knn_kl_divergence",
    "kde_kl_divergence",
    "empirical_kl_divergence",
    "sample_kl_divergence",
]

logger = logging.getLogger(__name__)

# Rule name -> interval classes it can integrate.
QUADRATURE_RULES = {
    "quad": ("finite", "semi_infinite", "infinite"),
    "gauss_legendre": ("finite",),
    "gauss_laguerre": ("semi_infinite",),
    "gauss_hermite": ("infinite",),
}

_PROVIDER_ERRORS = (ValueError, ArithmeticError, FloatingPointError)


class _DivergenceDetected(Exception):
    """Raised inside an integrand to stop integration once Q vanishes under P."""


def _check_rule(rule: str, interval: str) -> None:
    if rule not in QUADRATURE_RULES:
        raise ValueError(f"unknown quadrature rule {rule!r}; expected one of {sorted(QUADRATURE_RULES)}.")
    if interval not in QUADRATURE_RULES[rule]:
        raise ValueError(f"quadrature rule {rule!r} cannot integrate over a {interval.replace('_', '-')} interval.")


@dataclass(frozen=True)
class KLDivergenceOptions:
    """Numerical configuration for KL divergence without a closed form.

    Attributes:
        finite_rule: Quadrature rule for finite intervals
            (``"quad"`` or ``"gauss_legendre"``).
        semi_infinite_rule: Rule for half-lines, applied after shifting the
            finite end to 0 (``"quad"`` or ``"gauss_laguerre"``).
        infinite_rule: Rule for the whole real line
            (``"quad"`` or ``"gauss_hermite"``).
        quadrature_points: Node count for the fixed-order rules.
        density_floor: Smallest density used in the log ratio; P densities
            at or below it contribute nothing.
        discrete_tail_cutoff: Survival mass below which an unbounded discrete
            sum stops (both P and Q must be below it).
        max_discrete_evaluations: Safety cap on discrete summation terms.
        integration_lower_bound: Optional explicit lower limit. Clips the
            shared support and disables the closed-form path.
        integration_upper_bound: Optional explicit upper limit.

    Raises:
        ValueError: On unknown rules or rules used for the wrong interval class.
    """

    finite_rule: str = "quad"
    semi_infinite_rule: str = "quad"
    infinite_rule: str = "quad"
    quadrature_points: int = 64
    density_floor: float = 1e-18
    discrete_tail_cutoff: float = 1e-9
    max_discrete_evaluations: int = 250_000
    integration_lower_bound: Optional[float] = None
    integration_upper_bound: Optional[float] = None

    def __post_init__(self) -> None:
        _check_rule(self.finite_rule, "finite")
        _check_rule(self.semi_infinite_rule, "semi_infinite")
        _check_rule(self.infinite_rule, "infinite")
        if int(self.quadrature_points) < 1:
            raise ValueError("quadrature_points must be >= 1.")
        if not self.density_floor >= 0:
            raise ValueError("density_floor must be >= 0.")
        if not self.discrete_tail_cutoff >= 0:
            raise ValueError("discrete_tail_cutoff must be >= 0.")
        if int(self.max_discrete_evaluations) < 1:
            raise ValueError("max_discrete_evaluations must be >= 1.")

    @classmethod
    def automatic(cls) -> "KLDivergenceOptions":
        """Default rules and tolerances, no explicit bounds."""
        return cls()

    @classmethod
    def for_distribution(cls, dist: Distribution) -> "KLDivergenceOptions":
        """Defaults with explicit bounds at the finite ends of `dist`'s support."""
        lower = dist.support_lower_bound
        upper = dist.support_upper_bound
        return cls(
            integration_lower_bound=float(lower) if np.isfinite(lower) else None,
            integration_upper_bound=float(upper) if np.isfinite(upper) else None,
        )

    def with_overrides(self, **changes) -> "KLDivergenceOptions":
        """Returns a copy with the given fields replaced."""
        return replace(self, **changes)

    @property
    def has_explicit_bounds(self) -> bool:
        return self.integration_lower_bound is not None or self.integration_upper_bound is not None


# ----------------------------- dispatch -------------------------------


def kl_divergence(
    p: Distribution,
    q: Distribution,
    options: Optional[KLDivergenceOptions] = None,
    *,
    estimator: Optional[DensityEstimator] = None,
) -> Optional[float]:
    """Computes D_KL(p || q) in nats.

    Args:
        p: Distribution P (parametric or sample-backed).
        q: Reference distribution Q.
        options: Integration/summation configuration. Defaults to
            :meth:`KLDivergenceOptions.automatic`. Ignored when both sides
            are sample-backed.
        estimator: Density estimator for two continuous samples. Defaults
            to ``DensityEstimator.automatic()``.

    Returns:
        Optional[float]: The divergence, ``inf`` when it diverges, ``None``
        when undefined.

    Raises:
        ValueError: If `options` carries an invalid quadrature configuration.
    """
    if isinstance(p, EmpiricalDistribution) and isinstance(q, EmpiricalDistribution):
        logger.debug("KL: sample-vs-sample path")
        return empirical_kl_divergence(p, q, estimator)

    options = options or KLDivergenceOptions.automatic()
    if not options.has_explicit_bounds:
        analytic = _analytic_kl(p, q)
        if analytic is not None:
            logger.debug("KL: closed-form path")
            return analytic

    if p.is_discrete != q.is_discrete:
        logger.debug("KL undefined: discreteness differs")
        return None
    if p.is_discrete:
        logger.debug("KL: discrete summation path")
        return _discrete_kl(p, q, options)
    logger.debug("KL: numerical integration path")
    return _continuous_kl(p, q, options)


# ----------------------------- closed form ----------------------------


def normal_kl_divergence(mu_p: float, sigma_p: float, mu_q: float, sigma_q: float) -> Optional[float]:
    """KL(N(mu_p, sigma_p^2) || N(mu_q, sigma_q^2)); ``None`` unless both scales are positive."""
    if not (sigma_p > 0 and sigma_q > 0):
        return None
    diff = mu_p - mu_q
    return float(
        np.log(sigma_q / sigma_p)
        + (sigma_p * sigma_p + diff * diff) / (2.0 * sigma_q * sigma_q)
        - 0.5
    )


def _normal_parameters(dist: Distribution) -> Optional[Tuple[float, float]]:
    getter = getattr(dist, "normal_parameters", None)
    return getter() if callable(getter) else None


def _analytic_kl(p: Distribution, q: Distribution) -> Optional[float]:
    params_p = _normal_parameters(p)
    params_q = _normal_parameters(q)
    if params_p is None or params_q is None:
        return None
    return normal_kl_divergence(params_p[0], params_p[1], params_q[0], params_q[1])


# ----------------------------- numerics -------------------------------


def _shared_bounds(
    p: Distribution,
    q: Distribution,
    options: KLDivergenceOptions,
) -> Optional[Tuple[float, float]]:
    lower = max(float(p.support_lower_bound), float(q.support_lower_bound))
    upper = min(float(p.support_upper_bound), float(q.support_upper_bound))
    if options.integration_lower_bound is not None:
        lower = max(lower, float(options.integration_lower_bound))
    if options.integration_upper_bound is not None:
        upper = min(upper, float(options.integration_upper_bound))
    if np.isnan(lower) or np.isnan(upper) or lower > upper:
        return None
    return lower, upper


def _positive_density(dist: Distribution, x: float) -> float:
    try:
        value = float(dist.pdf(x))
    except _PROVIDER_ERRORS:
        return 0.0
    if not np.isfinite(value) or value <= 0:
        return 0.0
    return value


def _vanishes(dist: Distribution, x: float) -> bool:
    """True when `dist` has exactly zero density at `x`, not mere underflow."""
    try:
        return float(dist.log_pdf(x)) == -np.inf
    except _PROVIDER_ERRORS:
        return True


def _positive_survival(dist: Distribution, x: float) -> float:
    try:
        value = float(dist.sf(x))
    except _PROVIDER_ERRORS:
        return np.inf
    if not np.isfinite(value) or value < 0:
        return np.inf
    return value


def _apply_rule(
    rule: str,
    interval: str,
    f: Callable[[float], float],
    a: float,
    b: float,
    points: int,
) -> float:
    _check_rule(rule, interval)
    if rule == "quad":
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", IntegrationWarning)
            value, abserr = quad(f, a, b, limit=200)
        logger.debug("quad over [%g, %g]: %.6g (abserr %.2g)", a, b, value, abserr)
        return float(value)
    vf = np.vectorize(f, otypes=[float])
    if rule == "gauss_legendre":
        value, _ = fixed_quad(vf, a, b, n=points)
        return float(value)
    if rule == "gauss_laguerre":
        nodes, weights = laggauss(points)
        scaled = np.exp(np.log(weights) + nodes)
        return float(np.sum(scaled * vf(nodes)))
    nodes, weights = hermgauss(points)
    scaled = np.exp(np.log(weights) + nodes * nodes)
    return float(np.sum(scaled * vf(nodes)))


def _integrate(
    f: Callable[[float], float],
    lower: float,
    upper: float,
    options: KLDivergenceOptions,
) -> float:
    points = int(options.quadrature_points)
    lower_finite = np.isfinite(lower)
    upper_finite = np.isfinite(upper)
    if lower_finite and upper_finite:
        return _apply_rule(options.finite_rule, "finite", f, lower, upper, points)
    if lower_finite:
        return _apply_rule(options.semi_infinite_rule, "semi_infinite", lambda t: f(lower + t), 0.0, np.inf, points)
    if upper_finite:
        return _apply_rule(options.semi_infinite_rule, "semi_infinite", lambda t: f(upper - t), 0.0, np.inf, points)
    return _apply_rule(options.infinite_rule, "infinite", f, -np.inf, np.inf, points)


def _continuous_kl(p: Distribution, q: Distribution, options: KLDivergenceOptions) -> Optional[float]:
    bounds = _shared_bounds(p, q, options)
    if bounds is None:
        return None
    lower, upper = bounds
    if not lower < upper:
        return None
    floor = max(float(options.density_floor), TINY)

    def integrand(x: float) -> float:
        px = _positive_density(p, x)
        if px <= floor:
            return 0.0
        qx = _positive_density(q, x)
        if qx <= 0 and _vanishes(q, x):
            raise _DivergenceDetected
        return px * float(np.log(px / max(qx, floor)))

    try:
        value = _integrate(integrand, lower, upper, options)
    except _DivergenceDetected:
        return np.inf
    return value if np.isfinite(value) else None


def _discrete_kl(p: Distribution, q: Distribution, options: KLDivergenceOptions) -> Optional[float]:
    bounds = _shared_bounds(p, q, options)
    if bounds is None:
        return None
    lower, upper = bounds
    if not np.isfinite(lower):
        return None
    floor = max(float(options.density_floor), TINY)
    tail = max(float(options.discrete_tail_cutoff), TINY)

    start = int(np.ceil(lower))
    end = int(np.floor(upper)) if np.isfinite(upper) else None
    if end is not None and end < start:
        return None

    terms = []
    idx = start
    iterations = 0
    while end is None or idx <= end:
        x = float(idx)
        px = _positive_density(p, x)
        if px > floor:
            qx = _positive_density(q, x)
            if qx <= 0 and _vanishes(q, x):
                return np.inf
            terms.append(px * float(np.log(px / max(qx, floor))))

        iterations += 1
        if iterations > options.max_discrete_evaluations:
            logger.info("discrete KL aborted after %d evaluations", options.max_discrete_evaluations)
            return None
        if end is None and _positive_survival(p, x) <= tail and _positive_survival(q, x) <= tail:
            break
        idx += 1

    value = _compensated_sum(terms)
    return value if np.isfinite(value) else None


# ------------------------- sample-vs-sample ---------------------------


def discrete_sample_kl_divergence(
    unique_p: ArrayLike,
    counts_p: ArrayLike,
    unique_q: ArrayLike,
    counts_q: ArrayLike,
    alpha: float = SMOOTHING_ALPHA,
) -> float:
    """KL between two frequency tables over the union of their supports.

    Both sides are Laplace-smoothed, so values unseen on one side still get
    the pseudo-count mass and the sum stays finite.
    """
    up = np.asarray(unique_p, dtype=float)
    cp = np.asarray(counts_p)
    uq = np.asarray(unique_q, dtype=float)
    cq = np.asarray(counts_q)
    terms = []
    for value in np.union1d(up, uq):
        pv = smoothed_probability(value, up, cp, alpha)
        if pv == 0:
            continue
        qv = max(smoothed_probability(value, uq, cq, alpha), TINY)
        terms.append(pv * (np.log(pv) - np.log(qv)))
    return _compensated_sum(terms)


def _closest_indices(sorted_values: NDArray[np.floating], targets: NDArray[np.floating]) -> NDArray[np.intp]:
    """Index of the nearest element of `sorted_values` for each target (lower index on ties)."""
    m = sorted_values.shape[0]
    low = np.searchsorted(sorted_values, targets, side="left")
    upper = np.clip(low, 0, m - 1)
    below = np.clip(low - 1, 0, m - 1)
    pick_upper = np.abs(sorted_values[upper] - targets) < np.abs(targets - sorted_values[below])
    out = np.where(pick_upper, upper, below)
    out = np.where(low == 0, 0, out)
    return np.where(low >= m, m - 1, out)


def knn_kl_divergence(samples_p: ArrayLike, samples_q: ArrayLike, k: int) -> Optional[float]:
    """KNN cross-sample KL estimate for continuous 1-D samples.

    For every point of P, its k-th neighbour distance within P (``rho``) is
    compared with the k-th neighbour distance, within Q, of the Q point
    nearest to it (``nu``)::

        (1/n) sum_i log(nu_i / rho_i) + log(m / (n - 1))

    Both samples are reduced to their distinct values first, so `n` and `m`
    count distinct values.

    Returns:
        Optional[float]: The estimate, or ``None`` unless ``n > k`` and ``m >= k``.
    """
    p = _distinct_values(samples_p)
    q = _distinct_values(samples_q)
    n, m = p.shape[0], q.shape[0]
    k = max(1, int(k))
    if not (n > k and m >= k):
        return None
    epsilon = max(1e-12 * float(p[-1] - p[0]), TINY)
    rho = kth_neighbor_distances(p, k)
    nu = kth_neighbor_distances(q, k)[_closest_indices(q, p)]
    log_ratio = np.log(np.maximum(nu, epsilon) / np.maximum(rho, epsilon))
    return float(np.mean(log_ratio) + np.log(m / (n - 1)))


def kde_kl_divergence(
    samples_p: ArrayLike,
    samples_q: ArrayLike,
    bandwidth: Optional[float] = None,
) -> Optional[float]:
    """Gaussian-KDE cross-sample KL estimate.

    Each side's KDE is evaluated at every point of P, P leaving the point
    itself out and Q not; bandwidths are selected independently unless a
    shared `bandwidth` is given. Both samples are reduced to their distinct
    values first.
    """
    p = _distinct_values(samples_p)
    q = _distinct_values(samples_q)
    if p.shape[0] == 0 or q.shape[0] == 0:
        return None
    bw_p = bandwidth if bandwidth is not None else select_kde_bandwidth(p)
    bw_q = bandwidth if bandwidth is not None else select_kde_bandwidth(q)
    dens_p = kde_density(p, p, bw_p, omit_self=True)
    dens_q = kde_density(q, p, bw_q)
    value = float(np.mean(np.log(dens_p / dens_q)))
    return value if np.isfinite(value) else None


def empirical_kl_divergence(
    p: EmpiricalDistribution,
    q: EmpiricalDistribution,
    estimator: Optional[DensityEstimator] = None,
) -> Optional[float]:
    """Nonparametric KL between two sample-backed distributions.

    If either side is discrete the smoothed frequency tables are compared
    over the union support; otherwise the chosen continuous estimator is
    used (``automatic`` resolves to KNN with ``k = min(3, max(1, n // 4))``).
    """
    if p.is_discrete or q.is_discrete:
        return discrete_sample_kl_divergence(p.unique_values, p.counts, q.unique_values, q.counts)
    return sample_kl_divergence(p.samples, q.samples, discrete=False, estimator=estimator)


def sample_kl_divergence(
    samples_p: ArrayLike,
    samples_q: ArrayLike,
    *,
    discrete: bool,
    estimator: Optional[DensityEstimator] = None,
) -> Optional[float]:
    """Nonparametric KL between two raw samples on a fixed estimation path.

    Unlike :func:`empirical_kl_divergence` the samples are not classified:
    `discrete` selects the frequency-table comparison, otherwise `estimator`
    is used as for two continuous empirical distributions. Bootstrap
    replicates go through here with the classification of the original
    pair, since a resample of continuous data repeats values and would
    classify as discrete.
    """
    if discrete:
        up, cp, _ = frequency_table(samples_p)
        uq, cq, _ = frequency_table(samples_q)
        return discrete_sample_kl_divergence(up, cp, uq, cq)

    n = int(np.asarray(samples_p).reshape(-1).shape[0])
    chosen = (estimator or DensityEstimator.automatic()).resolve(n)
    if chosen.kind == "knn":
        return knn_kl_divergence(samples_p, samples_q, chosen.k)
    return kde_kl_divergence(samples_p, samples_q, chosen.bandwidth)
