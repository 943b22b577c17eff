"""Shared fixtures for the yield_voi test suite."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from yield_voi.analysis import run_analysis
from yield_voi.config import AnalysisConfig
from yield_voi.example_data import example_measurements
from yield_voi.hierarchical_model import HierarchicalYieldModel


def _tiny_config(**overrides) -> AnalysisConfig:
    settings = dict(
        n_chains=2, n_draws_per_chain=100, n_warmup=100,
        n_prior_predictive=500,
        voi_n_chains=1, voi_n_draws_per_chain=60, voi_n_warmup=60,
        noise_levels=[5.0, 20.0], n_tests=4, max_batches=4,
        n_bootstrap=100, mote_n_range=[3, 5, 10], mote_n_replicates=10,
        max_workers=1,
    )
    settings.update(overrides)
    return AnalysisConfig(**settings)


@pytest.fixture
def tiny_config():
    """Factory for a configuration small enough for a full pipeline run."""
    return _tiny_config


@pytest.fixture
def measurements():
    return example_measurements()


@pytest.fixture
def model():
    return HierarchicalYieldModel()


@pytest.fixture(scope="module")
def small_posterior():
    """Two short chains on the example data."""
    return HierarchicalYieldModel().posterior_sample(
        example_measurements().values, 5.0,
        n_chains=2, n_draws_per_chain=150, n_warmup=150,
        seed=11, max_workers=1,
    )


@pytest.fixture(scope="module")
def quick_results():
    return run_analysis(example_measurements(), _tiny_config())


@pytest.fixture
def bimodal_strengths():
    """Half the strengths well below the threshold, half well above."""
    return np.array([250.0] * 50 + [400.0] * 50)
