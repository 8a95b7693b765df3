import numpy as np
import pytest

from probest.core.support import (
    SupportClassification,
    classify_support,
    frequency_table,
    smoothed_frequencies,
    smoothed_probability,
)


# --------------------------- Classification ----------------------------

def test_integer_lattice_with_duplicates(lattice_samples):
    uniq = np.unique(lattice_samples)
    c = classify_support(uniq, lattice_samples.shape[0])

    assert c == SupportClassification(True, 1.0, 1.0)


def test_all_unique_values_are_continuous(rng):
    x = np.sort(rng.normal(size=50))
    assert not classify_support(x, 50).is_discrete


def test_single_value_is_discrete_without_step():
    c = classify_support(np.array([2.5]), 4)
    assert c.is_discrete
    assert c.lattice_step is None
    assert c.lattice_origin == 2.5


def test_non_integer_step_lattice():
    x = np.array([0.0, 0.25, 0.75, 1.0])  # gaps are multiples of 0.25
    c = classify_support(x, 8)
    assert c.is_discrete
    assert c.lattice_step == pytest.approx(0.25)
    assert c.lattice_origin == 0.0


def test_irregular_gaps_fall_back_to_duplicate_fraction():
    x = np.array([0.0, 1.0, 2.5])

    # 7 of 10 observations are duplicates -> discrete, unknown step
    many = classify_support(x, 10)
    assert many.is_discrete
    assert many.lattice_step is None
    assert many.lattice_origin == 0.0

    # 1 of 4 is a duplicate (fraction 0.25, not above threshold) -> continuous
    few = classify_support(x, 4)
    assert not few.is_discrete


# ------------------------------ Smoothing -------------------------------

def test_smoothed_frequencies_sum_to_one_and_keep_order():
    counts = np.array([1, 2, 3, 4])
    p = smoothed_frequencies(counts)

    assert np.isclose(p.sum(), 1.0, atol=1e-12)
    assert np.allclose(p, np.array([1.5, 2.5, 3.5, 4.5]) / 12.0)
    assert np.all(np.diff(p) > 0)


def test_smoothed_frequencies_sum_to_one_for_random_tables(rng):
    for _ in range(20):
        counts = rng.integers(1, 50, size=rng.integers(1, 30))
        assert np.isclose(smoothed_frequencies(counts).sum(), 1.0, atol=1e-12)


def test_smoothed_probability_of_unseen_value_gets_pseudo_count():
    uniq = np.array([1.0, 2.0, 3.0, 4.0])
    counts = np.array([1, 2, 3, 4])

    assert smoothed_probability(4.0, uniq, counts) == pytest.approx(4.5 / 12.0)
    assert smoothed_probability(2.5, uniq, counts) == pytest.approx(0.5 / 12.0)
    assert smoothed_probability(9.0, uniq, counts) == pytest.approx(0.5 / 12.0)


def test_frequency_table(lattice_samples):
    uniq, counts, probs = frequency_table(lattice_samples)

    assert np.array_equal(uniq, [1.0, 2.0, 3.0, 4.0])
    assert np.array_equal(counts, [1, 2, 3, 4])
    assert counts.sum() == lattice_samples.shape[0]
    assert np.isclose(probs.sum(), 1.0)
