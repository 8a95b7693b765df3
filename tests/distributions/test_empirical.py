import numpy as np
import pytest

from probest import (
    BootstrapMethod,
    DensityEstimator,
    EmpiricalDistribution,
    Normal1D,
)
from probest.core.density import knn_entropy


# ------------------------------- Basics --------------------------------

@pytest.mark.parametrize(
    "bad",
    [
        [],
        [1.0, np.nan, 2.0],
        [1.0, np.inf],
        np.ones((3, 2)),
    ],
)
def test_init_rejects_empty_or_non_finite(bad):
    with pytest.raises(ValueError):
        EmpiricalDistribution(bad)


def test_column_vector_accepted():
    emp = EmpiricalDistribution(np.array([[3.0], [1.0], [2.0]]))
    assert emp.n == 3
    assert np.array_equal(emp.samples, [1.0, 2.0, 3.0])
    assert not emp.samples.flags.writeable


def test_lattice_views(lattice):
    assert lattice.n == 10
    assert lattice.is_discrete
    assert lattice.lattice_step == 1.0
    assert lattice.lattice_origin == 1.0
    assert np.array_equal(lattice.unique_values, [1.0, 2.0, 3.0, 4.0])
    assert np.array_equal(lattice.counts, [1, 2, 3, 4])
    assert lattice.range == (1.0, 4.0)
    assert (lattice.support_lower_bound, lattice.support_upper_bound) == (1.0, 4.0)
    assert np.isclose(lattice.probabilities.sum(), 1.0)
    assert "discrete" in repr(lattice)


def test_continuous_views(normal_empirical):
    assert not normal_empirical.is_discrete
    assert normal_empirical.lattice_step is None
    assert normal_empirical.lattice_origin is None
    assert np.all(np.diff(normal_empirical.samples) >= 0)


# ------------------------- Discrete point queries -------------------------

def test_discrete_pdf_is_smoothed_mass(lattice):
    assert lattice.pdf(4.0) == pytest.approx(4.5 / 12.0)
    assert lattice.pdf(1.0) == pytest.approx(1.5 / 12.0)
    assert lattice.pdf(2.5) == 0.0
    assert lattice.log_pdf(2.5) == -np.inf
    assert lattice.log_pdf(4.0) == pytest.approx(np.log(4.5 / 12.0))


def test_discrete_cdf_and_quantile(lattice):
    assert lattice.cdf(0.5) == 0.0
    assert lattice.cdf(-np.inf) == 0.0
    assert lattice.cdf(2.0) == pytest.approx(4.0 / 12.0)
    assert lattice.cdf(2.7) == pytest.approx(4.0 / 12.0)
    assert lattice.cdf(4.0) == 1.0
    assert lattice.cdf(np.inf) == 1.0

    assert lattice.quantile(0.0) == 1.0
    assert lattice.quantile(1.0) == 4.0
    assert lattice.quantile(0.5) == 3.0
    assert lattice.quantile_complement(0.25) == 4.0
    for x in lattice.unique_values:
        assert lattice.quantile(lattice.cdf(x)) == x


def test_discrete_survival_hazard_chf(lattice):
    assert lattice.sf(2.0) == pytest.approx(2.0 / 3.0)
    assert lattice.hazard(2.0) == pytest.approx((2.5 / 12.0) / (2.0 / 3.0))
    assert lattice.hazard(2.5) == 0.0
    assert lattice.chf(2.0) == pytest.approx(-np.log(2.0 / 3.0))
    assert lattice.chf(4.0) == np.inf


def test_domain_errors(lattice):
    with pytest.raises(ValueError):
        lattice.pdf(np.nan)
    with pytest.raises(ValueError):
        lattice.pdf(np.inf)
    with pytest.raises(ValueError):
        lattice.cdf(np.nan)
    with pytest.raises(ValueError):
        lattice.quantile(1.2)
    with pytest.raises(ValueError):
        lattice.quantile(-0.1)
    with pytest.raises(ValueError):
        lattice.quantile_complement(2.0)


# --------------------------- Discrete summaries ---------------------------

def test_discrete_moments(lattice):
    x = np.array([1.0, 2.0, 3.0, 4.0])
    p = np.array([1.5, 2.5, 3.5, 4.5]) / 12.0
    m = (p * x).sum()
    v = (p * (x - m) ** 2).sum()

    assert lattice.mean() == pytest.approx(35.0 / 12.0)
    assert lattice.var() == pytest.approx(v)
    assert lattice.std() == pytest.approx(np.sqrt(v))
    assert lattice.skewness() == pytest.approx((p * (x - m) ** 3).sum() / v ** 1.5)
    assert lattice.kurtosis() == pytest.approx((p * (x - m) ** 4).sum() / v ** 2)
    assert lattice.kurtosis_excess() == pytest.approx(lattice.kurtosis() - 3.0)
    assert lattice.median() == 3.0
    assert lattice.mode() == 4.0


def test_discrete_entropy_is_miller_madow(lattice):
    p = np.array([1.5, 2.5, 3.5, 4.5]) / 12.0
    expected = -(p * np.log(p)).sum() + 3.0 / 20.0
    assert lattice.entropy() == pytest.approx(expected, abs=1e-12)


def test_mode_ties_go_to_smallest_value():
    emp = EmpiricalDistribution([1.0, 1.0, 2.0, 3.0, 3.0])
    assert emp.mode() == 1.0


def test_constant_sample_has_no_shape_moments():
    emp = EmpiricalDistribution([2.0, 2.0, 2.0])
    assert emp.is_discrete
    assert emp.var() == 0.0
    assert emp.skewness() is None
    assert emp.kurtosis() is None
    assert emp.kurtosis_excess() is None


def test_multimodality_flag(lattice):
    assert not lattice.is_likely_multimodal
    assert EmpiricalDistribution([0, 1, 1, 1, 2, 3, 3, 3, 4]).is_likely_multimodal


# ------------------------ Continuous point queries ------------------------

def test_continuous_pdf_cdf(normal_empirical):
    xs = normal_empirical.samples
    n = normal_empirical.n

    assert normal_empirical.pdf(0.0) == pytest.approx(1.0 / np.sqrt(2.0 * np.pi), abs=0.05)
    assert normal_empirical.log_pdf(0.0) == pytest.approx(np.log(normal_empirical.pdf(0.0)))
    assert normal_empirical.cdf(xs[0] - 1.0) == 0.0
    assert normal_empirical.cdf(xs[9]) == pytest.approx(10.0 / n)
    assert normal_empirical.cdf(xs[-1]) == 1.0


def test_continuous_quantile(normal_empirical):
    xs = normal_empirical.samples
    probs = [0.1, 0.5, 0.9]

    assert np.allclose([normal_empirical.quantile(p) for p in probs], np.quantile(xs, probs))
    assert normal_empirical.quantile(0.0) == xs[0]
    assert normal_empirical.quantile(1.0) == xs[-1]
    for i in (0, 500, 1500):
        q = normal_empirical.quantile(normal_empirical.cdf(xs[i]))
        assert xs[i] <= q <= xs[i + 1]


def test_continuous_moments_match_sample(normal_empirical, normal_samples):
    assert normal_empirical.mean() == pytest.approx(normal_samples.mean(), abs=1e-12)
    assert normal_empirical.var() == pytest.approx(normal_samples.var(), rel=1e-10)
    assert abs(normal_empirical.skewness()) < 0.2
    assert normal_empirical.kurtosis() == pytest.approx(3.0, abs=0.5)
    assert normal_empirical.median() == pytest.approx(np.median(normal_samples), abs=0.01)
    assert abs(normal_empirical.mode()) < 0.5


def test_continuous_entropy(normal_empirical, normal_entropy):
    assert abs(normal_empirical.entropy() - normal_entropy) < 0.1


# ------------------------------- Sampling -------------------------------

def test_sample_draws_stored_points(lattice):
    draws = lattice.sample(100)
    assert draws.shape == (100,)
    assert np.isin(draws, lattice.samples).all()


def test_sample_without_replacement_guard(lattice):
    with pytest.raises(ValueError):
        lattice.sample(11, replace=False)
    draws = lattice.sample(10, replace=False)
    assert np.array_equal(np.sort(draws), lattice.samples)


def test_from_distribution(rng):
    emp = EmpiricalDistribution.from_distribution(Normal1D(0.0, 1.0, rng=rng), num_samples=500)
    assert emp.n == 500
    assert not emp.is_discrete


# ------------------------------ Estimates -------------------------------

def test_entropy_estimate_discrete(lattice):
    est = lattice.entropy_estimate(bootstrap_samples=50, confidence_level=0.9)

    assert est.value == lattice.entropy()
    assert est.replicates == 50
    assert est.method is BootstrapMethod.PERCENTILE
    lo, hi = est.confidence_interval
    assert lo <= hi


def test_entropy_estimate_needs_more_than_one_replicate(lattice):
    assert lattice.entropy_estimate(bootstrap_samples=1).confidence_interval is None


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_percentile_interval_contains_point_estimate(seed):
    rng = np.random.default_rng(seed)
    data = rng.choice(5, size=500, p=[0.1, 0.2, 0.4, 0.2, 0.1]).astype(float)
    emp = EmpiricalDistribution(data, rng=rng)

    est = emp.entropy_estimate(bootstrap_samples=500)
    lo, hi = est.confidence_interval
    assert lo <= est.value <= hi


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_percentile_interval_contains_point_estimate_continuous(seed):
    rng = np.random.default_rng(seed)
    emp = EmpiricalDistribution(rng.normal(size=500), rng=rng)

    est = emp.entropy_estimate(bootstrap_samples=200)
    lo, hi = est.confidence_interval
    assert lo <= est.value <= hi
    assert hi - lo < 0.5


def test_entropy_estimate_bca(lattice):
    est = lattice.entropy_estimate(bootstrap_samples=100, method="bca")
    assert est.method is BootstrapMethod.BCA
    lo, hi = est.confidence_interval
    assert lo <= hi


def test_entropy_estimate_with_knn(rng):
    xs = rng.normal(size=200)
    emp = EmpiricalDistribution(xs, rng=rng)
    est = emp.entropy_estimate(DensityEstimator.knn(3), bootstrap_samples=30)

    assert est.value == pytest.approx(knn_entropy(xs, 3))
    assert est.confidence_interval is not None


def test_entropy_estimate_parallel_is_reproducible(lattice_samples):
    a = EmpiricalDistribution(lattice_samples, rng=np.random.default_rng(7))
    b = EmpiricalDistribution(lattice_samples, rng=np.random.default_rng(7))

    ci_a = a.entropy_estimate(bootstrap_samples=40, n_jobs=2).confidence_interval
    ci_b = b.entropy_estimate(bootstrap_samples=40, n_jobs=2).confidence_interval
    assert ci_a == ci_b


def test_kl_divergence_estimate_records_percentile(lattice, rng):
    other = EmpiricalDistribution([1.0, 1.0, 2.0, 2.0, 3.0, 3.0, 4.0, 4.0, 4.0, 5.0], rng=rng)
    est = lattice.kl_divergence_estimate(other, bootstrap_samples=50, method="bca")

    assert est.value == pytest.approx(lattice.kl_divergence(other))
    assert est.method is BootstrapMethod.PERCENTILE
    lo, hi = est.confidence_interval
    assert lo <= hi


def test_kl_divergence_estimate_continuous_interval_brackets_value():
    rng = np.random.default_rng(3)
    p = EmpiricalDistribution(rng.normal(0.0, 1.0, size=400), rng=rng)
    q = EmpiricalDistribution(rng.normal(0.5, 1.0, size=400), rng=rng)
    assert not p.is_discrete and not q.is_discrete

    est = p.kl_divergence_estimate(q, bootstrap_samples=100)
    lo, hi = est.confidence_interval
    assert lo <= est.value <= hi
    assert hi < 1.0


def test_kl_divergence_estimate_undefined():
    p = EmpiricalDistribution([0.1, 0.7])
    q = EmpiricalDistribution([0.2, 0.5, 0.9])
    assert p.kl_divergence_estimate(q, estimator=DensityEstimator.knn(3)) is None
