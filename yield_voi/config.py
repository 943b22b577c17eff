"""
Analysis settings.

``AnalysisConfig`` gathers every tunable of a run.  It round-trips
through JSON with ``to_dict`` / ``from_dict``; keys not known to the
current version are ignored on load so older settings files keep
working.
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

from .constants import (
    DEFAULT_BOOTSTRAP_RESAMPLES, DEFAULT_CONFIDENCE_LEVEL, DEFAULT_COSTS,
    DEFAULT_COST_OF_FAILURE, DEFAULT_EPSILON, DEFAULT_MAX_BATCHES,
    DEFAULT_NOISE_LEVELS, DEFAULT_N_CHAINS, DEFAULT_N_DRAWS, DEFAULT_N_TESTS,
    DEFAULT_N_WARMUP, DEFAULT_PARALLEL_BACKEND, DEFAULT_SEED,
    DEFAULT_THRESHOLD_MPA, DEFAULT_VOI_N_CHAINS, DEFAULT_VOI_N_DRAWS,
    DEFAULT_VOI_N_WARMUP, MOTE_N_RANGE, MOTE_N_REPLICATES, PARALLEL_BACKENDS,
    PRIOR_MEAN_MU, PRIOR_MEAN_SD, PRIOR_SD_RATE,
)
from .data_model import CostTable
from .errors import InvalidParameterError


def _default_costs() -> Dict[str, Dict[str, float]]:
    return {
        a: {'fixed_cost': fixed, 'strength_multiplier': mult}
        for a, (fixed, mult) in DEFAULT_COSTS.items()
    }


@dataclass
class AnalysisConfig:
    """All analysis configuration settings."""
    seed: int = DEFAULT_SEED
    # Decision inputs
    threshold: float = DEFAULT_THRESHOLD_MPA
    cost_of_failure: float = DEFAULT_COST_OF_FAILURE
    costs: Dict[str, Dict[str, float]] = field(default_factory=_default_costs)
    # Model
    epsilon: float = DEFAULT_EPSILON
    prior_mean_mu: float = PRIOR_MEAN_MU
    prior_mean_sd: float = PRIOR_MEAN_SD
    prior_sd_rate: float = PRIOR_SD_RATE
    n_chains: int = DEFAULT_N_CHAINS
    n_draws_per_chain: int = DEFAULT_N_DRAWS
    n_warmup: int = DEFAULT_N_WARMUP
    n_prior_predictive: int = 4000
    # Value of information
    noise_levels: List[float] = field(default_factory=lambda: list(DEFAULT_NOISE_LEVELS))
    n_tests: int = DEFAULT_N_TESTS
    max_batches: Optional[int] = DEFAULT_MAX_BATCHES
    voi_n_chains: int = DEFAULT_VOI_N_CHAINS
    voi_n_draws_per_chain: int = DEFAULT_VOI_N_DRAWS
    voi_n_warmup: int = DEFAULT_VOI_N_WARMUP
    # Classical statistics
    n_bootstrap: int = DEFAULT_BOOTSTRAP_RESAMPLES
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL
    mote_n_range: List[int] = field(default_factory=lambda: list(MOTE_N_RANGE))
    mote_n_replicates: int = MOTE_N_REPLICATES
    # Execution
    max_workers: Optional[int] = None
    parallel_backend: str = DEFAULT_PARALLEL_BACKEND
    cache_dir: Optional[str] = None

    @classmethod
    def quick(cls, **overrides) -> 'AnalysisConfig':
        """Reduced sampling effort for smoke runs and demos."""
        settings = dict(
            n_chains=2, n_draws_per_chain=300, n_warmup=300,
            n_prior_predictive=1000,
            voi_n_chains=1, voi_n_draws_per_chain=200, voi_n_warmup=200,
            max_batches=20, n_bootstrap=300, mote_n_replicates=50,
        )
        settings.update(overrides)
        return cls(**settings)

    def cost_table(self) -> CostTable:
        return CostTable.from_dict(self.costs)

    def validate(self) -> None:
        """Raise ``InvalidParameterError`` for out-of-domain settings."""
        positive_ints = ('n_chains', 'n_draws_per_chain', 'n_prior_predictive',
                         'n_tests', 'voi_n_chains', 'voi_n_draws_per_chain',
                         'n_bootstrap', 'mote_n_replicates')
        for name in positive_ints:
            if int(getattr(self, name)) < 1:
                raise InvalidParameterError(f"{name} must be >= 1")
        for name in ('n_warmup', 'voi_n_warmup'):
            if int(getattr(self, name)) < 0:
                raise InvalidParameterError(f"{name} must be >= 0")
        for name in ('epsilon', 'prior_mean_sd', 'prior_sd_rate'):
            if not float(getattr(self, name)) > 0:
                raise InvalidParameterError(f"{name} must be > 0")
        if self.cost_of_failure < 0:
            raise InvalidParameterError("cost_of_failure must be >= 0")
        if not self.noise_levels or any(float(v) <= 0 for v in self.noise_levels):
            raise InvalidParameterError("noise_levels must be non-empty and > 0")
        if not 0.0 < self.confidence_level < 1.0:
            raise InvalidParameterError("confidence_level must lie in (0, 1)")
        if self.max_batches is not None and self.max_batches < 1:
            raise InvalidParameterError("max_batches must be >= 1 or null")
        if any(int(n) < 3 for n in self.mote_n_range):
            raise InvalidParameterError("mote_n_range values must be >= 3")
        if self.max_workers is not None and int(self.max_workers) < 1:
            raise InvalidParameterError("max_workers must be >= 1 or null")
        if self.parallel_backend not in PARALLEL_BACKENDS:
            raise InvalidParameterError(
                f"parallel_backend must be one of {PARALLEL_BACKENDS}"
            )
        self.cost_table()

    def to_dict(self) -> dict:
        return asdict(self)

    @staticmethod
    def from_dict(d: dict) -> 'AnalysisConfig':
        return AnalysisConfig(**{k: v for k, v in d.items()
                                 if k in AnalysisConfig.__dataclass_fields__})


def load_config(path: str) -> AnalysisConfig:
    """Read an ``AnalysisConfig`` from a JSON file and validate it."""
    with open(path, 'r', encoding='utf-8') as f:
        state = json.load(f)
    if not isinstance(state, dict):
        raise InvalidParameterError(f"config file '{path}' must hold a JSON object")
    # Settings files written by save_config nest under "settings"
    cfg = AnalysisConfig.from_dict(state.get('settings', state))
    cfg.validate()
    return cfg


def save_config(config: AnalysisConfig, path: str) -> None:
    from . import APP_NAME, APP_VERSION
    state = {
        'tool': APP_NAME,
        'version': APP_VERSION,
        'settings': config.to_dict(),
    }
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(state, f, indent=2)
