"""Tests for the on-disk result cache."""

import numpy as np

from yield_voi.cache import ResultCache, cache_key
from yield_voi.data_model import VoIBatchOutcome, VoISweepPoint


def test_cache_key_is_stable_and_sensitive():
    a = cache_key("posterior", np.array([300.0, 310.0]), {'seed': 1})
    assert a == cache_key("posterior", np.array([300.0, 310.0]), {'seed': 1})
    assert a != cache_key("posterior", np.array([300.0, 310.5]), {'seed': 1})
    assert a != cache_key("posterior", np.array([300.0, 310.0]), {'seed': 2})


def test_ensemble_round_trip(tmp_path, small_posterior):
    cache = ResultCache(str(tmp_path))
    cache.save_ensemble("k", small_posterior)
    loaded = cache.load_ensemble("k")
    assert loaded.bit_identical(small_posterior)
    assert loaded.n_chains == small_posterior.n_chains
    assert dict(loaded.diagnostics) == dict(small_posterior.diagnostics)


def test_missing_entries_return_none(tmp_path):
    cache = ResultCache(str(tmp_path))
    assert cache.load_ensemble("nope") is None
    assert cache.load_sweep("nope") is None


def test_ensemble_computes_once(tmp_path, small_posterior):
    cache = ResultCache(str(tmp_path))
    calls = []

    def compute():
        calls.append(1)
        return small_posterior

    first = cache.ensemble("k", compute)
    second = cache.ensemble("k", compute)
    assert len(calls) == 1
    assert second.bit_identical(first)


def test_sweep_round_trip(tmp_path):
    batch = VoIBatchOutcome(noise_sd=5.0, batch_index=0, measurements=(301.0, 299.5),
                            chosen_action="no_action", expected_cost=12_000.0)
    points = [VoISweepPoint(
        measurement_precision=5.0, mean_expected_cost_with_data=12_000.0,
        monte_carlo_standard_error=0.0, value_of_information=3_000.0,
        n_batches=1, batches=(batch,),
    )]
    cache = ResultCache(str(tmp_path))
    assert cache.sweep("s", lambda: points) == points
    assert cache.load_sweep("s") == points
