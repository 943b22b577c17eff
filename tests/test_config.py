"""Tests for analysis settings and their JSON persistence."""

import json

import pytest

from yield_voi.config import AnalysisConfig, load_config, save_config
from yield_voi.constants import ACTIONS, DEFAULT_NOISE_LEVELS
from yield_voi.errors import InvalidParameterError


def test_defaults_are_valid():
    cfg = AnalysisConfig()
    cfg.validate()
    assert cfg.threshold == 300.0
    assert cfg.cost_of_failure == 1e6
    assert tuple(cfg.noise_levels) == DEFAULT_NOISE_LEVELS
    assert [a for a, _ in cfg.cost_table().items()] == list(ACTIONS)


def test_quick_reduces_effort_and_accepts_overrides():
    cfg = AnalysisConfig.quick(seed=9)
    assert cfg.seed == 9
    assert cfg.n_draws_per_chain < AnalysisConfig().n_draws_per_chain
    assert cfg.max_batches < AnalysisConfig().max_batches
    cfg.validate()


@pytest.mark.parametrize("field, value", [
    ("n_chains", 0),
    ("n_warmup", -1),
    ("epsilon", 0.0),
    ("prior_sd_rate", -1.0),
    ("cost_of_failure", -5.0),
    ("noise_levels", []),
    ("noise_levels", [5.0, 0.0]),
    ("confidence_level", 1.5),
    ("max_batches", 0),
    ("max_workers", 0),
    ("parallel_backend", "gpu"),
    ("mote_n_range", [2, 3]),
    ("costs", {"no_action": {"fixed_cost": 0.0, "strength_multiplier": 1.0}}),
])
def test_validate_rejects(field, value):
    cfg = AnalysisConfig(**{field: value})
    with pytest.raises(InvalidParameterError):
        cfg.validate()


def test_max_batches_may_be_unbounded():
    AnalysisConfig(max_batches=None).validate()


def test_from_dict_ignores_unknown_keys():
    cfg = AnalysisConfig.from_dict({"seed": 5, "legacy_option": True})
    assert cfg.seed == 5
    assert not hasattr(cfg, "legacy_option")


def test_save_and_load(tmp_path):
    path = str(tmp_path / "settings.json")
    cfg = AnalysisConfig(seed=77, noise_levels=[2.0, 4.0], max_workers=2)
    save_config(cfg, path)
    with open(path, encoding="utf-8") as fh:
        state = json.load(fh)
    assert "settings" in state and "version" in state
    assert load_config(path) == cfg


def test_load_flat_settings(tmp_path):
    path = tmp_path / "flat.json"
    path.write_text(json.dumps({"threshold": 310.0}), encoding="utf-8")
    assert load_config(str(path)).threshold == 310.0


def test_load_validates(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"n_chains": 0}), encoding="utf-8")
    with pytest.raises(InvalidParameterError):
        load_config(str(path))


def test_load_rejects_non_object(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(InvalidParameterError):
        load_config(str(path))
