from __future__ import annotations

from typing import Any, Optional, Tuple

import numpy as np
from numpy.typing import NDArray

import scipy.stats as sp
from scipy.stats import norm

from ._utils import _check_finite, _check_probability
from .distributions import Distribution

__all__ = [
    "Parametric",
    "Normal1D",
]


def _finite_or_none(value: Any) -> Optional[float]:
    v = float(np.asarray(value, dtype=float))
    return None if np.isnan(v) else v


class Parametric(Distribution):
    """Adapter exposing a scipy.stats distribution through :class:`Distribution`.

    Accepts a frozen continuous or discrete distribution (``sp.gamma(2.0)``,
    ``sp.poisson(3.0)``) or a discrete distribution built from explicit
    values (``sp.rv_discrete(values=(xk, pk))``). Parameter validation and
    all numerical evaluation stay with SciPy; the adapter adds the domain
    checks of the query surface and maps discrete ``pmf`` onto :meth:`pdf`.

    Attributes:
        family: SciPy family name (``"norm"``, ``"poisson"``, ...) or ``None``.
    """

    def __init__(self, dist: Any, *, rng: Optional[np.random.Generator] = None):
        """Wraps a scipy.stats distribution.

        Args:
            dist: Frozen scipy.stats distribution or an ``rv_discrete`` instance.
            rng: Random number generator used by :meth:`sample`.

        Raises:
            ValueError: If `dist` does not expose the scipy.stats interface.
        """
        for attr in ("cdf", "sf", "ppf", "isf", "support"):
            if not hasattr(dist, attr):
                raise ValueError(f"dist must be a scipy.stats distribution; missing {attr!r}.")
        generator = getattr(dist, "dist", dist)
        self._dist = dist
        self._discrete = isinstance(generator, sp.rv_discrete)
        self.family: Optional[str] = getattr(generator, "name", None)
        self._rng = rng or np.random.default_rng()

        lo, hi = dist.support()
        self._lower = float(lo)
        self._upper = float(hi)

    @property
    def dist(self) -> Any:
        """The wrapped scipy.stats object."""
        return self._dist

    @property
    def support_lower_bound(self) -> float:
        return self._lower

    @property
    def support_upper_bound(self) -> float:
        return self._upper

    @property
    def is_discrete(self) -> bool:
        return self._discrete

    @property
    def lattice_step(self) -> Optional[float]:
        return 1.0 if self._discrete else None

    @property
    def lattice_origin(self) -> Optional[float]:
        if self._discrete and np.isfinite(self._lower):
            return self._lower
        return None

    # --------------------------- point queries ---------------------------

    def pdf(self, x: float) -> float:
        x = _check_finite(x)
        if self._discrete:
            return float(self._dist.pmf(x))
        return float(self._dist.pdf(x))

    def log_pdf(self, x: float) -> float:
        x = _check_finite(x)
        if self._discrete:
            return float(self._dist.logpmf(x))
        return float(self._dist.logpdf(x))

    def cdf(self, x: float) -> float:
        x = float(x)
        if np.isnan(x):
            raise ValueError("x must not be NaN.")
        if x == np.inf:
            return 1.0
        if x == -np.inf:
            return 0.0
        return float(self._dist.cdf(x))

    def sf(self, x: float) -> float:
        x = float(x)
        if np.isnan(x):
            raise ValueError("x must not be NaN.")
        if x == np.inf:
            return 0.0
        if x == -np.inf:
            return 1.0
        return float(self._dist.sf(x))

    def quantile(self, p: float) -> float:
        return float(self._dist.ppf(_check_probability(p)))

    def quantile_complement(self, q: float) -> float:
        return float(self._dist.isf(_check_probability(q, "q")))

    # ------------------------------ moments ------------------------------

    def _moments(self) -> Tuple[Any, Any, Any, Any]:
        with np.errstate(all="ignore"):
            return self._dist.stats(moments="mvsk")

    def mean(self) -> Optional[float]:
        return _finite_or_none(self._moments()[0])

    def var(self) -> Optional[float]:
        return _finite_or_none(self._moments()[1])

    def skewness(self) -> Optional[float]:
        return _finite_or_none(self._moments()[2])

    def kurtosis(self) -> Optional[float]:
        excess = _finite_or_none(self._moments()[3])
        return None if excess is None else excess + 3.0

    def median(self) -> Optional[float]:
        return _finite_or_none(self._dist.median())

    def entropy(self) -> Optional[float]:
        with np.errstate(all="ignore"):
            return _finite_or_none(self._dist.entropy())

    def normal_parameters(self) -> Optional[Tuple[float, float]]:
        """Returns ``(mean, sd)`` when the wrapped family is the Normal, else ``None``."""
        if self.family != "norm":
            return None
        mu = float(self._dist.mean())
        sigma = float(self._dist.std())
        if not (np.isfinite(mu) and np.isfinite(sigma)) or sigma <= 0:
            return None
        return mu, sigma

    # ----------------------------- sampling ------------------------------

    def sample(self, n_samples: int) -> NDArray[np.floating]:
        """Draws `n_samples` variates, shape (n_samples,)."""
        xs = self._dist.rvs(size=int(n_samples), random_state=self._rng)
        return np.asarray(xs, dtype=float).reshape(-1)

    rvs = sample

    @classmethod
    def from_distribution(
        cls,
        convert_from: Distribution,
        num_samples: int = 1024,
        *,
        family: Any = norm,
        **fit_kwargs: Any,
    ) -> 'Parametric':
        """Fits a scipy.stats family to draws from another distribution.

        Args:
            convert_from: Source distribution to sample from.
            num_samples: Number of draws. Defaults to 1024.
            family: Continuous scipy.stats family with a ``fit`` method.
            **fit_kwargs: Forwarded to ``family.fit``.

        Returns:
            Parametric: The fitted, frozen family.
        """
        xs = np.asarray(convert_from.sample(num_samples), dtype=float).reshape(-1)
        params = family.fit(xs, **fit_kwargs)
        return cls(family(*params))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(family={self.family!r})"


class Normal1D(Parametric):
    """Univariate Normal distribution N(mu, sigma^2).

    Attributes:
        mu: Mean of the distribution.
        sigma: Standard deviation (must be > 0).
    """

    def __init__(self, mu: float, sigma: float, *, rng: np.random.Generator | None = None):
        """Initializes a Normal1D distribution.

        Args:
            mu: Mean of the distribution.
            sigma: Standard deviation (must be > 0).
            rng: Random number generator.
                If ``None``, a default generator is created.

        Raises:
            ValueError: If ``mu`` is not finite or ``sigma`` is not positive.
        """
        if not np.isfinite(mu):
            raise ValueError("mu must be finite")
        if not (np.isfinite(sigma) and sigma > 0):
            raise ValueError("sigma must be > 0")
        self.mu = float(mu)
        self.sigma = float(sigma)
        super().__init__(norm(loc=self.mu, scale=self.sigma), rng=rng)

    def mode(self) -> float:
        return self.mu

    def normal_parameters(self) -> Tuple[float, float]:
        return self.mu, self.sigma

    @classmethod
    def from_distribution(cls, convert_from: Distribution, num_samples: int = 1024, **fit_kwargs: Any) -> 'Normal1D':
        """Fits a Normal1D to samples drawn from another distribution (moment matching).

        Args:
            convert_from: Source distribution to sample from.
            num_samples: Number of samples to draw. Defaults to 1024.
            **fit_kwargs: Optional keyword arguments (ignored).

        Returns:
            Fitted distribution instance.
        """
        xs = np.asarray(convert_from.sample(num_samples), dtype=float).reshape(-1)
        mu = float(xs.mean())
        sigma = float(xs.std(ddof=1))
        return cls(mu, max(sigma, 1e-12))

    def __repr__(self) -> str:
        return f"Normal1D(mu={self.mu!r}, sigma={self.sigma!r})"
