from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np
from numpy.typing import NDArray

from ..custom_types import ArrayLike

# Smallest positive subnormal double; used as a floor before taking logarithms.
TINY = float(np.nextafter(0.0, 1.0))


def _as_finite_1d(samples: ArrayLike, name: str = "samples") -> NDArray[np.floating]:
    """Converts input to a non-empty, finite 1-D float array.

    Args:
        samples (ArrayLike): Scalar, (n,), or (n, 1) input.
        name (str): Argument name used in error messages.

    Returns:
        NDArray[np.floating]: Flattened float array of shape (n,).

    Raises:
        ValueError: If the input is empty, has an unsupported shape, or
            contains NaN or infinite values.
    """
    arr = np.asarray(samples, dtype=float)
    if arr.ndim == 0:
        arr = arr.reshape(1)
    elif arr.ndim == 2 and arr.shape[1] == 1:
        arr = arr[:, 0]
    elif arr.ndim != 1:
        raise ValueError(f"{name} must be scalar, (n,), or (n,1).")
    if arr.shape[0] < 1:
        raise ValueError(f"{name} requires at least one observation.")
    if not np.all(np.isfinite(arr)):
        bad = arr[~np.isfinite(arr)][0]
        raise ValueError(f"{name} must be finite; got {bad!r}.")
    return arr


def _check_finite(x: float, name: str = "x") -> float:
    """Returns `x` as float, raising ValueError if it is NaN or infinite."""
    x = float(x)
    if not np.isfinite(x):
        raise ValueError(f"{name} must be finite; got {x!r}.")
    return x


def _check_probability(p: float, name: str = "p") -> float:
    """Returns `p` as float, raising ValueError unless 0 <= p <= 1."""
    p = float(p)
    if not (0.0 <= p <= 1.0):
        raise ValueError(f"{name} must lie in [0, 1]; got {p!r}.")
    return p


def _unique_with_counts(values: ArrayLike) -> Tuple[NDArray[np.floating], NDArray[np.int64]]:
    """Collapses a sample into sorted unique values and their multiplicities.

    Returns:
        Tuple of (unique values ascending, counts) with equal lengths and
        ``counts.sum() == len(values)``.
    """
    uniq, counts = np.unique(np.asarray(values, dtype=float), return_counts=True)
    return uniq, counts.astype(np.int64)


def _compensated_sum(terms: Iterable[float]) -> float:
    """Sums floats with Neumaier's variant of Kahan compensation.

    Args:
        terms: Iterable of addends.

    Returns:
        float: The compensated sum.
    """
    total = 0.0
    compensation = 0.0
    for t in terms:
        t = float(t)
        s = total + t
        if abs(total) >= abs(t):
            compensation += (total - s) + t
        else:
            compensation += (t - s) + total
        total = s
    return total + compensation


def _clip_unit_interval(x: NDArray[np.floating], eps: float = 0.0) -> NDArray[np.floating]:
    """Clips values to the [0, 1] interval, optionally padding to an open range.

    Args:
        x (NDArray[np.floating]): Values to clip.
        eps (float, optional): If 0, clips to [0, 1]. If >0, clips to
            (eps, 1 - eps) using `np.nextafter` to avoid exact endpoints.
            Defaults to 0.0.

    Returns:
        NDArray[np.floating]: Array with clipped values.
    """
    if eps <= 0.0:
        return np.clip(x, 0.0, 1.0)
    lo = np.nextafter(0.0 + eps, 1.0)
    hi = np.nextafter(1.0 - eps, 0.0)
    return np.clip(x, lo, hi)


def _interpolated_quantile(sorted_values: NDArray[np.floating], probability: float) -> float:
    """Linear-interpolation quantile of an ascending array.

    The probability is clipped to [0, 1] and mapped to position
    ``p * (n - 1)`` between order statistics.
    """
    n = sorted_values.shape[0]
    p = float(_clip_unit_interval(np.asarray(probability, dtype=float)))
    position = p * (n - 1)
    lower = int(np.floor(position))
    upper = min(n - 1, lower + 1)
    fraction = position - lower
    return float(sorted_values[lower] * (1.0 - fraction) + sorted_values[upper] * fraction)
