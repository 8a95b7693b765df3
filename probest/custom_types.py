# custom_types.py
"""
Type aliases shared across probest.

Conventions:
- Annotate function input with `ArrayLike`
- Annotate sorted/validated 1-D data with `Sample`
- Estimators passed to the bootstrap map samples to an optional float;
  ``None`` marks an undefined value on that sample
"""
from __future__ import annotations
from typing import Callable, Optional, Tuple, TypeAlias

import numpy as np
from numpy.random import Generator as NumpyRNG
from numpy.typing import (
    NDArray,
    ArrayLike as NumpyArrayLike
)

ArrayLike: TypeAlias = NumpyArrayLike
Sample: TypeAlias = NDArray[np.floating]
PRNG: TypeAlias = NumpyRNG

Interval: TypeAlias = Tuple[float, float]
OneSampleEstimator: TypeAlias = Callable[[Sample], Optional[float]]
TwoSampleEstimator: TypeAlias = Callable[[Sample, Sample], Optional[float]]
