import unittest

import numpy as np
import scipy.stats as sp

from probest import EmpiricalDistribution, Normal1D, Parametric


class TestNormal1D(unittest.TestCase):

    def setUp(self):
        self.mu = 1.5
        self.sigma = 2.5
        # fix RNG for reproducibility
        self.dist = Normal1D(mu=self.mu,
                             sigma=self.sigma,
                             rng=np.random.default_rng(123))

    def test_invalid_parameters(self):
        with self.assertRaises(ValueError):
            Normal1D(0.0, 0.0)
        with self.assertRaises(ValueError):
            Normal1D(0.0, -1.0)
        with self.assertRaises(ValueError):
            Normal1D(np.inf, 1.0)

    def test_sample_shape(self):
        x10 = self.dist.sample(10)
        self.assertIsInstance(x10, np.ndarray)
        self.assertEqual(x10.shape, (10,))

    def test_summaries(self):
        self.assertAlmostEqual(self.dist.mean(), self.mu)
        self.assertAlmostEqual(self.dist.var(), self.sigma ** 2)
        self.assertAlmostEqual(self.dist.std(), self.sigma)
        self.assertAlmostEqual(self.dist.skewness(), 0.0)
        self.assertAlmostEqual(self.dist.kurtosis(), 3.0)
        self.assertAlmostEqual(self.dist.kurtosis_excess(), 0.0)
        self.assertEqual(self.dist.mode(), self.mu)
        self.assertAlmostEqual(self.dist.median(), self.mu)
        self.assertAlmostEqual(self.dist.entropy(), 0.5 * np.log(2 * np.pi * np.e * self.sigma ** 2))
        self.assertEqual(self.dist.normal_parameters(), (self.mu, self.sigma))

    def test_point_queries(self):
        z = sp.norm(self.mu, self.sigma)
        np.testing.assert_allclose(self.dist.pdf(0.3), z.pdf(0.3), rtol=1e-12)
        np.testing.assert_allclose(self.dist.log_pdf(0.3), z.logpdf(0.3), rtol=1e-12)
        self.assertAlmostEqual(self.dist.cdf(self.mu), 0.5)
        self.assertEqual(self.dist.cdf(-np.inf), 0.0)
        self.assertEqual(self.dist.cdf(np.inf), 1.0)
        self.assertEqual(self.dist.sf(np.inf), 0.0)
        self.assertAlmostEqual(self.dist.quantile(0.975), z.ppf(0.975))
        self.assertAlmostEqual(self.dist.quantile_complement(0.025), z.ppf(0.975))
        self.assertAlmostEqual(self.dist.inv_cdf(0.5), self.mu)
        self.assertAlmostEqual(self.dist.hazard(0.0), z.pdf(0.0) / z.sf(0.0))
        self.assertAlmostEqual(self.dist.chf(0.0), -np.log(z.sf(0.0)))

    def test_domain_errors(self):
        with self.assertRaises(ValueError):
            self.dist.pdf(np.nan)
        with self.assertRaises(ValueError):
            self.dist.cdf(np.nan)
        with self.assertRaises(ValueError):
            self.dist.quantile(1.5)

    def test_from_distribution(self):
        src = Normal1D(2.0, 0.5, rng=np.random.default_rng(0))
        fitted = Normal1D.from_distribution(src, num_samples=4000)
        self.assertAlmostEqual(fitted.mu, 2.0, delta=0.05)
        self.assertAlmostEqual(fitted.sigma, 0.5, delta=0.05)


class TestParametric(unittest.TestCase):

    def test_rejects_non_scipy_objects(self):
        with self.assertRaises(ValueError):
            Parametric(object())

    def test_poisson_is_discrete_lattice(self):
        dist = Parametric(sp.poisson(3.0))
        self.assertTrue(dist.is_discrete)
        self.assertEqual(dist.family, "poisson")
        self.assertEqual(dist.lattice_step, 1.0)
        self.assertEqual(dist.lattice_origin, 0.0)
        self.assertEqual(dist.support_upper_bound, np.inf)
        self.assertAlmostEqual(dist.pdf(2.0), sp.poisson(3.0).pmf(2))
        self.assertIsNone(dist.normal_parameters())

    def test_explicit_values(self):
        dist = Parametric(sp.rv_discrete(values=([0, 2, 4], [0.2, 0.5, 0.3])))
        self.assertTrue(dist.is_discrete)
        self.assertEqual((dist.support_lower_bound, dist.support_upper_bound), (0.0, 4.0))
        self.assertAlmostEqual(dist.pdf(2.0), 0.5)
        self.assertEqual(dist.pdf(1.0), 0.0)
        self.assertAlmostEqual(dist.cdf(2.0), 0.7)
        self.assertAlmostEqual(dist.mean(), 2.2)

    def test_continuous_family(self):
        dist = Parametric(sp.gamma(2.0))
        self.assertFalse(dist.is_discrete)
        self.assertIsNone(dist.lattice_step)
        self.assertEqual(dist.support_lower_bound, 0.0)
        self.assertAlmostEqual(dist.mean(), 2.0)
        self.assertAlmostEqual(dist.kurtosis(), 6.0)  # excess 3

    def test_undefined_moments_are_none(self):
        cauchy = Parametric(sp.cauchy())
        self.assertIsNone(cauchy.mean())
        self.assertIsNone(cauchy.var())

    def test_from_distribution_fits_family(self):
        src = EmpiricalDistribution(np.random.default_rng(1).normal(3.0, 2.0, size=3000))
        fitted = Parametric.from_distribution(src, num_samples=3000)
        self.assertEqual(fitted.family, "norm")
        mu, sigma = fitted.normal_parameters()
        self.assertAlmostEqual(mu, 3.0, delta=0.2)
        self.assertAlmostEqual(sigma, 2.0, delta=0.2)


if __name__ == "__main__":
    unittest.main()
