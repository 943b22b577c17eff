"""Tests for the hierarchical yield-strength model and its sampler."""

import pickle

import numpy as np
import pytest

from yield_voi.errors import InsufficientDataError, InvalidParameterError, ModelDivergenceError
from yield_voi.hierarchical_model import HierarchicalYieldModel, broadcast_epsilon

DATA = np.array([318.2, 301.5, 344.0, 327.9, 296.3, 335.1, 310.4, 322.8])


def _sample(model, data=DATA, epsilon=5.0, **kwargs):
    settings = dict(n_chains=2, n_draws_per_chain=80, n_warmup=80,
                    seed=3, max_workers=1)
    settings.update(kwargs)
    return model.posterior_sample(data, epsilon, **settings)


class TestBroadcastEpsilon:

    def test_scalar_is_expanded(self):
        np.testing.assert_array_equal(broadcast_epsilon(5.0, 3), [5.0, 5.0, 5.0])

    def test_vector_must_match_length(self):
        with pytest.raises(InvalidParameterError):
            broadcast_epsilon([1.0, 2.0], 3)

    @pytest.mark.parametrize("eps", [0.0, -1.0, np.nan])
    def test_values_must_be_positive(self, eps):
        with pytest.raises(InvalidParameterError):
            broadcast_epsilon(eps, 2)


class TestModel:

    def test_rejects_bad_priors(self):
        with pytest.raises(InvalidParameterError):
            HierarchicalYieldModel(prior_mean_sd=0.0)
        with pytest.raises(InvalidParameterError):
            HierarchicalYieldModel(prior_sd_rate=-1.0)

    def test_log_prior_outside_support(self, model):
        assert model.log_prior(300.0, 0.0) == -np.inf
        assert np.isfinite(model.log_prior(300.0, 20.0))

    def test_log_prior_prefers_prior_mean(self, model):
        assert model.log_prior(300.0, 20.0) > model.log_prior(500.0, 20.0)

    def test_prior_predictive(self, model):
        prior = model.prior_predictive(4000, seed=1)
        assert len(prior) == 4000
        assert prior.predicted_yield.min() >= 0.0
        assert prior.std.min() > 0.0
        assert abs(prior.mean.mean() - 300.0) < 10.0
        assert abs(prior.std.mean() - 50.0) < 5.0

    def test_prior_predictive_reproducible(self, model):
        a = model.prior_predictive(100, seed=4)
        b = model.prior_predictive(100, seed=4)
        np.testing.assert_array_equal(a.predicted_yield, b.predicted_yield)

    def test_prior_predictive_needs_draws(self, model):
        with pytest.raises(InvalidParameterError):
            model.prior_predictive(0)


class TestPosteriorSample:

    def test_layout(self, model):
        post = _sample(model)
        assert len(post) == 160
        assert post.n_chains == 2
        assert post.n_draws_per_chain == 80
        np.testing.assert_array_equal(post.chain_id[:80], 0)
        np.testing.assert_array_equal(post.chain_id[80:], 1)
        np.testing.assert_array_equal(post.iteration_id[:80], np.arange(80))
        assert post.latent_yield.shape == (160, len(DATA))
        assert post.n_measurements == len(DATA)

    def test_draws_are_in_support(self, model):
        post = _sample(model)
        assert post.std.min() > 0.0
        assert post.predicted_yield.min() >= 0.0
        assert np.all(np.isfinite(post.mean))

    def test_posterior_concentrates_near_data(self, model):
        post = _sample(model, n_draws_per_chain=300, n_warmup=200)
        assert abs(post.mean.mean() - DATA.mean()) < 15.0
        assert 2.0 < np.median(post.std) < 60.0

    def test_same_seed_is_bit_identical(self, model):
        assert _sample(model).bit_identical(_sample(model))

    @pytest.mark.parametrize("backend", ["thread", "process"])
    def test_result_does_not_depend_on_pool(self, model, backend):
        serial = _sample(model, n_chains=3, max_workers=1)
        pooled = _sample(model, n_chains=3, max_workers=3, backend=backend)
        assert serial.bit_identical(pooled)

    def test_bad_pool_settings(self, model):
        with pytest.raises(InvalidParameterError):
            _sample(model, max_workers=0)
        with pytest.raises(InvalidParameterError):
            _sample(model, max_workers=2, backend="gpu")

    def test_different_seed_differs(self, model):
        assert not _sample(model, seed=3).bit_identical(_sample(model, seed=4))

    def test_heterogeneous_epsilon(self, model):
        eps = np.linspace(1.0, 20.0, len(DATA))
        post = _sample(model, epsilon=eps)
        np.testing.assert_array_equal(post.epsilon, eps)

    def test_precise_measurement_pins_its_latent_strength(self, model):
        eps = np.full(len(DATA), 10.0)
        eps[0] = 0.5
        post = _sample(model, epsilon=eps, n_draws_per_chain=200)
        spread = post.latent_yield.std(axis=0)
        assert spread[0] < spread[1:].min()
        assert abs(post.latent_yield[:, 0].mean() - DATA[0]) < 2.0

    def test_single_measurement_is_accepted(self, model):
        post = _sample(model, data=[310.0])
        assert post.latent_yield.shape[1] == 1

    def test_diagnostics_only_for_multiple_chains(self, model):
        assert set(_sample(model).diagnostics) == {
            'rhat_mean', 'ess_mean', 'rhat_std', 'ess_std'}
        assert dict(_sample(model, n_chains=1).diagnostics) == {}

    def test_arrays_are_read_only(self, model):
        post = _sample(model)
        with pytest.raises(ValueError):
            post.mean[0] = 0.0

    def test_chain_view_and_iteration(self, model):
        post = _sample(model)
        second = post.chain(1)
        assert len(second) == 80
        np.testing.assert_array_equal(second.mean, post.mean[80:])
        draw = post[5]
        assert draw.chain_id == 0 and draw.iteration_id == 5
        assert draw.derived_predicted_yield == post.predicted_yield[5]
        assert len(list(post)) == len(post)

    def test_progress_reports_every_chain(self, model):
        calls = []
        _sample(model, n_chains=3,
                progress=lambda stage, done, total: calls.append((stage, done, total)))
        assert calls[-1] == ("posterior_sample", 3, 3)
        assert len(calls) == 3

    def test_empty_measurements(self, model):
        with pytest.raises(InsufficientDataError):
            _sample(model, data=[])

    def test_non_finite_measurements(self, model):
        with pytest.raises(InvalidParameterError):
            _sample(model, data=[300.0, np.inf])

    def test_bad_layout(self, model):
        with pytest.raises(InvalidParameterError):
            _sample(model, n_chains=0)
        with pytest.raises(InvalidParameterError):
            _sample(model, n_warmup=-1)

    def test_non_finite_log_posterior_raises(self, model, monkeypatch):
        monkeypatch.setattr(model, "log_joint", lambda *args: float('nan'))
        with pytest.raises(ModelDivergenceError) as exc:
            _sample(model)
        assert exc.value.chain == 0
        assert exc.value.n_measurements == len(DATA)


def test_divergence_error_survives_worker_pickling():
    err = ModelDivergenceError("posterior_sample", 8, chain=2, iteration=40,
                               detail="mu=nan")
    clone = pickle.loads(pickle.dumps(err))
    assert (clone.chain, clone.iteration, clone.n_measurements) == (2, 40, 8)
    assert str(clone) == str(err)
