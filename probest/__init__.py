import logging

from probest.core import (
    BootstrapDistribution,
    BootstrapEstimate,
    BootstrapMethod,
    DensityEstimator,
    Distribution,
    EmpiricalDistribution,
    KLDivergenceOptions,
    Normal1D,
    Parametric,
    SupportClassification,
    bootstrap_one_sample,
    bootstrap_two_sample,
    classify_support,
    continuous_entropy,
    discrete_entropy,
    kl_divergence,
    smoothed_frequencies,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BootstrapDistribution",
    "BootstrapEstimate",
    "BootstrapMethod",
    "DensityEstimator",
    "Distribution",
    "EmpiricalDistribution",
    "KLDivergenceOptions",
    "Normal1D",
    "Parametric",
    "SupportClassification",
    "bootstrap_one_sample",
    "bootstrap_two_sample",
    "classify_support",
    "continuous_entropy",
    "discrete_entropy",
    "kl_divergence",
    "smoothed_frequencies",
]
