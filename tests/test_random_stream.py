"""Tests for seed derivation and the validated random stream."""

import numpy as np
import pytest

from yield_voi.errors import InvalidParameterError
from yield_voi.random_stream import RandomStream, derive_seed


class TestDeriveSeed:

    def test_is_deterministic(self):
        assert derive_seed(7, "posterior_chain", 0) == derive_seed(7, "posterior_chain", 0)

    def test_depends_on_every_part(self):
        base = derive_seed(7, "posterior_chain", 0)
        assert derive_seed(8, "posterior_chain", 0) != base
        assert derive_seed(7, "prior_predictive", 0) != base
        assert derive_seed(7, "posterior_chain", 1) != base

    def test_fits_in_63_bits(self):
        assert 0 <= derive_seed(2**40, "x", 3, 4) < 2**63

    def test_numpy_integer_index_matches_python_int(self):
        assert derive_seed(1, "evi_batch_noise", np.int64(5)) == \
            derive_seed(1, "evi_batch_noise", 5)

    @pytest.mark.parametrize("bad", [1.5, "3", True, None])
    def test_rejects_non_integer_master_seed(self, bad):
        with pytest.raises(InvalidParameterError):
            derive_seed(bad, "stage")


class TestRandomStream:

    def test_same_seed_same_draws(self):
        a = RandomStream(3).normal(10.0, 2.0, size=20)
        b = RandomStream(3).normal(10.0, 2.0, size=20)
        np.testing.assert_array_equal(a, b)

    def test_spawn_is_reproducible_and_independent(self):
        parent = RandomStream(5)
        c1 = parent.spawn("mote", 3).standard_normal(5)
        c2 = RandomStream(5).spawn("mote", 3).standard_normal(5)
        c3 = RandomStream(5).spawn("mote", 4).standard_normal(5)
        np.testing.assert_array_equal(c1, c2)
        assert not np.array_equal(c1, c3)

    def test_negative_seed_rejected(self):
        with pytest.raises(InvalidParameterError):
            RandomStream(-1)

    @pytest.mark.parametrize("std", [0.0, -1.0, np.nan, np.inf])
    def test_normal_rejects_bad_std(self, std):
        with pytest.raises(InvalidParameterError):
            RandomStream(0).normal(0.0, std)

    def test_normal_rejects_non_finite_mean(self):
        with pytest.raises(InvalidParameterError):
            RandomStream(0).normal(np.nan, 1.0)

    def test_exponential_is_parameterised_by_rate(self):
        draws = RandomStream(1).exponential(1.0 / 50.0, size=20000)
        assert draws.min() >= 0.0
        assert abs(draws.mean() - 50.0) < 2.0

    @pytest.mark.parametrize("rate", [0.0, -0.5])
    def test_exponential_rejects_bad_rate(self, rate):
        with pytest.raises(InvalidParameterError):
            RandomStream(0).exponential(rate)

    def test_uniform_requires_ordered_bounds(self):
        with pytest.raises(InvalidParameterError):
            RandomStream(0).uniform(1.0, 1.0)

    def test_integers_requires_ordered_bounds(self):
        with pytest.raises(InvalidParameterError):
            RandomStream(0).integers(3, 3)

    def test_negative_size_rejected(self):
        with pytest.raises(InvalidParameterError):
            RandomStream(0).standard_normal(-2)

    def test_choice_rejects_empty_population(self):
        with pytest.raises(InvalidParameterError):
            RandomStream(0).choice([])


class TestTruncatedNormal:

    def test_respects_lower_bound(self):
        draws = RandomStream(2).truncated_normal(10.0, 50.0, 0.0, size=5000)
        assert draws.min() >= 0.0

    def test_matches_untruncated_when_bound_is_remote(self):
        draws = RandomStream(2).truncated_normal(300.0, 20.0, 0.0, size=20000)
        assert abs(draws.mean() - 300.0) < 1.0
        assert abs(draws.std() - 20.0) < 1.0

    def test_elementwise_parameters(self):
        mean = np.array([100.0, 200.0, 300.0])
        std = np.array([1.0, 2.0, 3.0])
        draws = RandomStream(4).truncated_normal(mean, std, 0.0)
        assert draws.shape == (3,)
        assert np.all(np.abs(draws - mean) < 10 * std)

    def test_far_tail_stays_just_above_bound(self):
        # Phi(-50) underflows; draws must still be finite and hug the bound
        draws = RandomStream(9).truncated_normal(0.0, 1.0, 50.0, size=1000)
        assert np.all(np.isfinite(draws))
        assert draws.min() >= 50.0
        assert draws.max() < 51.0

    def test_scalar_call_returns_scalar(self):
        value = RandomStream(0).truncated_normal(5.0, 1.0, 0.0)
        assert np.ndim(value) == 0
