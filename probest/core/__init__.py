from probest.core.distributions import Distribution
from probest.core.parametric import Parametric, Normal1D
from probest.core.empirical import EmpiricalDistribution
from probest.core.support import SupportClassification, classify_support, smoothed_frequencies
from probest.core.density import DensityEstimator
from probest.core.entropy import discrete_entropy, continuous_entropy
from probest.core.divergence import KLDivergenceOptions, kl_divergence
from probest.core.bootstrap import (
    BootstrapDistribution,
    BootstrapEstimate,
    BootstrapMethod,
    bootstrap_one_sample,
    bootstrap_two_sample,
)
