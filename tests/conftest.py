import pytest
import numpy as np
from probest import EmpiricalDistribution

@pytest.fixture
def rng():
    return np.random.default_rng(42)

@pytest.fixture
def lattice_samples():
    return np.array([1.0, 2.0, 2.0, 3.0, 3.0, 3.0, 4.0, 4.0, 4.0, 4.0])

@pytest.fixture
def lattice(lattice_samples, rng):
    return EmpiricalDistribution(lattice_samples, rng=rng)

@pytest.fixture
def normal_samples(rng):
    return rng.normal(size=2000)

@pytest.fixture
def normal_empirical(normal_samples, rng):
    return EmpiricalDistribution(normal_samples, rng=rng)

@pytest.fixture
def normal_entropy():
    return 0.5 * np.log(2.0 * np.pi * np.e)  # ~1.4189
