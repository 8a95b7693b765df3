from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING
from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from .divergence import KLDivergenceOptions

__all__ = [
    "Distribution",
]


# -------------------------- Abstract Classes ----------------------------


class Distribution(ABC):
    """
    Abstract base class for univariate probability distributions.

    This class defines the query surface consumed by the estimation engine
    (divergence, entropy and bootstrap helpers). Both parametric wrappers
    around a distribution provider and sample-backed distributions implement
    it, so any value exposing these methods can be passed to
    :func:`probest.core.divergence.kl_divergence`.

    Point queries take and return Python floats. Domain errors (a non-finite
    evaluation point, a probability outside [0, 1]) raise ``ValueError``.
    Summary statistics return ``None`` when they are undefined.

    Subclasses that cannot support a specific operation (e.g., sampling)
    may leave that method unimplemented.
    """

    # ---- Support ----

    @property
    @abstractmethod
    def support_lower_bound(self) -> float:
        """float: Lower end of the support (may be ``-inf``)."""
        raise NotImplementedError

    @property
    @abstractmethod
    def support_upper_bound(self) -> float:
        """float: Upper end of the support (may be ``inf``)."""
        raise NotImplementedError

    @property
    @abstractmethod
    def is_discrete(self) -> bool:
        """bool: Whether the distribution lives on a discrete lattice."""
        raise NotImplementedError

    @property
    def lattice_step(self) -> Optional[float]:
        """Optional[float]: Spacing of the support lattice, when known."""
        return None

    @property
    def lattice_origin(self) -> Optional[float]:
        """Optional[float]: Offset of the support lattice, when known."""
        return None

    @property
    def is_likely_multimodal(self) -> bool:
        """bool: Heuristic multimodality flag. Parametric families default to False."""
        return False

    # ---- Core functions ----

    @abstractmethod
    def pdf(self, x: float) -> float:
        """
        Evaluates the probability density (or mass, when discrete) at `x`.

        Args:
            x: Evaluation point. Must be finite.

        Returns:
            float: Nonnegative density or mass.

        Raises:
            ValueError: If `x` is NaN or infinite.
        """
        raise NotImplementedError

    def log_pdf(self, x: float) -> float:
        """Natural logarithm of :meth:`pdf`; ``-inf`` where the density is zero."""
        p = self.pdf(x)
        return float(np.log(p)) if p > 0 else -np.inf

    @abstractmethod
    def cdf(self, x: float) -> float:
        """
        Evaluates the cumulative distribution function F(x) = P(X <= x).

        Args:
            x: Evaluation point.

        Returns:
            float: Value in [0, 1].
        """
        raise NotImplementedError

    def sf(self, x: float) -> float:
        """Survival function S(x) = P(X > x)."""
        return max(0.0, 1.0 - self.cdf(x))

    def hazard(self, x: float) -> float:
        """Hazard h(x) = f(x) / S(x); ``inf`` when S(x) = 0 and f(x) > 0."""
        density = self.pdf(x)
        if density == 0:
            return 0.0
        survival = self.sf(x)
        if survival > 0:
            return density / survival
        return np.inf

    def chf(self, x: float) -> float:
        """Cumulative hazard H(x) = -log S(x); ``inf`` when S(x) <= 0."""
        survival = self.sf(x)
        if survival <= 0:
            return np.inf
        return float(-np.log(survival))

    # ---- Inverses ----

    @abstractmethod
    def quantile(self, p: float) -> float:
        """
        Computes the lower-tail quantile (inverse CDF).

        Args:
            p: Probability in [0, 1].

        Returns:
            float: Value `x` such that F(x) is approximately `p`.

        Raises:
            ValueError: If `p` lies outside [0, 1].
        """
        raise NotImplementedError

    def inv_cdf(self, u: float) -> float:
        """Alias for :meth:`quantile`."""
        return self.quantile(u)

    def quantile_complement(self, q: float) -> float:
        """Upper-tail quantile: returns `x` such that S(x) is approximately `q`."""
        q = float(q)
        if not (0.0 <= q <= 1.0):
            raise ValueError(f"q must lie in [0, 1]; got {q!r}.")
        return self.quantile(1.0 - q)

    # ---- Summary statistics ----

    def mean(self) -> Optional[float]:
        return None

    def var(self) -> Optional[float]:
        return None

    def std(self) -> Optional[float]:
        """Standard deviation derived from :meth:`var`, when defined."""
        v = self.var()
        if v is None:
            return None
        return float(np.sqrt(max(v, 0.0)))

    def mode(self) -> Optional[float]:
        return None

    def median(self) -> Optional[float]:
        return self.quantile(0.5)

    def skewness(self) -> Optional[float]:
        return None

    def kurtosis(self) -> Optional[float]:
        """Pearson kurtosis (3 for a normal distribution), when defined."""
        return None

    def kurtosis_excess(self) -> Optional[float]:
        """Excess kurtosis (kurtosis - 3), when defined."""
        k = self.kurtosis()
        return None if k is None else k - 3.0

    def entropy(self) -> Optional[float]:
        """Entropy in nats, when defined."""
        return None

    # ---- Sampling and conversion ----

    def sample(self, n_samples: int) -> NDArray[np.floating]:
        """
        Samples data points from the distribution.

        This method may be optionally implemented by subclasses that
        support random sampling.

        Args:
            n_samples: The number of samples to generate.

        Returns:
            NDArray: An array of shape (n_samples,).

        Raises:
            NotImplementedError: If the subclass does not implement this method.
        """
        raise NotImplementedError("This method may be implemented by subclasses (optional)")

    @classmethod
    @abstractmethod
    def from_distribution(
        cls,
        convert_from: 'Distribution',
        **fit_kwargs: Any,
    ) -> 'Distribution':
        """
        Constructs a new distribution by fitting or converting from another.

        Args:
            convert_from: The source distribution to fit or convert from.
            **fit_kwargs: Additional fitting parameters specific to the subclass.

        Returns:
            Distribution: A new instance of `cls` fitted to the source distribution.
        """
        raise NotImplementedError("This method should be implemented by subclasses")

    # ---- Divergence ----

    def kl_divergence(
        self,
        other: 'Distribution',
        options: Optional['KLDivergenceOptions'] = None,
    ) -> Optional[float]:
        """
        Kullback-Leibler divergence D_KL(self || other) in nats.

        When `options` is omitted the integration bounds default to this
        distribution's finite support ends
        (see :meth:`KLDivergenceOptions.for_distribution`).

        Args:
            other: Reference distribution Q.
            options: Numerical configuration for integration and summation.

        Returns:
            Optional[float]: The divergence, ``inf`` when it diverges, or
            ``None`` when it is undefined.
        """
        from .divergence import KLDivergenceOptions, kl_divergence

        if options is None:
            options = KLDivergenceOptions.for_distribution(self)
        return kl_divergence(self, other, options=options)
