"""
Data model for the Yield Strength VoI Analyzer.

Immutable dataclasses passed between the computation stages.  Each
entity is produced once and handed downstream read-only: numpy arrays
held by an entity are flagged non-writeable on construction, so a
consumer cannot modify another stage's output in place.

Chart renderers and table builders receive these objects and nothing
else, which keeps presentation strictly downstream of computation.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from .constants import ACTIONS
from .errors import InvalidParameterError


def _frozen_array(values, dtype=float) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


# ── Measurements ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MeasurementRecord:
    """One row of the measurement CSV."""
    id: int
    yield_mpa: float


@dataclass(frozen=True)
class MeasurementSet:
    """All yield-strength measurements of one campaign.

    Parameters
    ----------
    records : tuple of MeasurementRecord
        Rows in file order.
    source_file : str
        Path the records were read from (empty for in-memory data).
    """
    records: Tuple[MeasurementRecord, ...]
    source_file: str = ""

    @classmethod
    def from_values(cls, values, source_file: str = "") -> "MeasurementSet":
        records = tuple(
            MeasurementRecord(id=i + 1, yield_mpa=float(v))
            for i, v in enumerate(values)
        )
        return cls(records=records, source_file=source_file)

    @property
    def values(self) -> np.ndarray:
        return _frozen_array([r.yield_mpa for r in self.records])

    @property
    def ids(self) -> List[int]:
        return [r.id for r in self.records]

    def __len__(self) -> int:
        return len(self.records)


# ── Distribution parameters ──────────────────────────────────────────────

@dataclass(frozen=True)
class DistributionParams:
    """Location/scale summary of a fitted or sampled distribution.

    ``extra`` holds family-specific shape parameters (e.g. the Weibull
    shape ``k``); for the Normal family it is empty.
    """
    mean: float
    std: float
    family: str = "normal"
    extra: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if not np.isfinite(self.mean):
            raise InvalidParameterError(f"mean must be finite, got {self.mean!r}")
        if not (np.isfinite(self.std) and self.std > 0):
            raise InvalidParameterError(f"std must be > 0, got {self.std!r}")

    def as_dict(self) -> Dict[str, float]:
        d = {'mean': float(self.mean), 'std': float(self.std)}
        d.update({k: float(v) for k, v in self.extra.items()})
        return d


# ── Posterior / prior ensembles ──────────────────────────────────────────

@dataclass(frozen=True)
class PosteriorSample:
    """One retained MCMC draw."""
    chain_id: int
    iteration_id: int
    mean: float
    std: float
    derived_predicted_yield: float


@dataclass(frozen=True, eq=False)
class PosteriorEnsemble:
    """Ordered collection of posterior draws, chain-major.

    Parameters
    ----------
    chain_id, iteration_id : ndarray of int
        Provenance of each draw.
    mean, std : ndarray of float
        Population mean and std draws.
    predicted_yield : ndarray of float
        One truncated-Normal(mean, std, lower=0) predictive draw per
        retained draw.  This is what the decision logic consumes.
    latent_yield : ndarray, shape (n_samples, n_measurements)
        Draws of the latent true yield strengths.
    n_chains, n_draws_per_chain : int
    epsilon : ndarray
        Per-observation measurement noise the ensemble was fitted with.
    diagnostics : dict
        Sampler diagnostics (split R-hat, ESS); informational only.
    """
    chain_id: np.ndarray
    iteration_id: np.ndarray
    mean: np.ndarray
    std: np.ndarray
    predicted_yield: np.ndarray
    latent_yield: np.ndarray
    n_chains: int
    n_draws_per_chain: int
    epsilon: np.ndarray
    diagnostics: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        for name in ('chain_id', 'iteration_id', 'mean', 'std',
                     'predicted_yield', 'latent_yield', 'epsilon'):
            arr = getattr(self, name)
            if isinstance(arr, np.ndarray) and arr.flags.writeable:
                arr = arr.copy()
                arr.setflags(write=False)
                object.__setattr__(self, name, arr)
        n = self.n_chains * self.n_draws_per_chain
        if len(self.mean) != n:
            raise InvalidParameterError(
                f"ensemble size {len(self.mean)} does not match "
                f"{self.n_chains} chains x {self.n_draws_per_chain} draws"
            )

    def __len__(self) -> int:
        return len(self.mean)

    def __getitem__(self, idx: int) -> PosteriorSample:
        return PosteriorSample(
            chain_id=int(self.chain_id[idx]),
            iteration_id=int(self.iteration_id[idx]),
            mean=float(self.mean[idx]),
            std=float(self.std[idx]),
            derived_predicted_yield=float(self.predicted_yield[idx]),
        )

    def __iter__(self) -> Iterator[PosteriorSample]:
        for i in range(len(self)):
            yield self[i]

    @property
    def n_measurements(self) -> int:
        return int(self.latent_yield.shape[1]) if self.latent_yield.ndim == 2 else 0

    def chain(self, chain_index: int) -> "PosteriorEnsemble":
        """Return the draws of a single chain as a one-chain ensemble."""
        mask = self.chain_id == chain_index
        return PosteriorEnsemble(
            chain_id=self.chain_id[mask],
            iteration_id=self.iteration_id[mask],
            mean=self.mean[mask],
            std=self.std[mask],
            predicted_yield=self.predicted_yield[mask],
            latent_yield=self.latent_yield[mask],
            n_chains=1,
            n_draws_per_chain=int(np.sum(mask)),
            epsilon=self.epsilon,
        )

    def bit_identical(self, other: "PosteriorEnsemble") -> bool:
        """True when every array of *other* matches this ensemble exactly."""
        names = ('chain_id', 'iteration_id', 'mean', 'std',
                 'predicted_yield', 'latent_yield', 'epsilon')
        return all(
            np.array_equal(getattr(self, n), getattr(other, n))
            for n in names
        )


@dataclass(frozen=True, eq=False)
class PriorPredictive:
    """Draws from the priors and the implied yield strengths."""
    mean: np.ndarray
    std: np.ndarray
    predicted_yield: np.ndarray

    def __len__(self) -> int:
        return len(self.predicted_yield)


# ── Decision inputs / outputs ────────────────────────────────────────────

@dataclass(frozen=True)
class CostEntry:
    """Fixed cost of an action and the factor it applies to strength."""
    fixed_cost: float
    strength_multiplier: float


@dataclass(frozen=True)
class CostTable:
    """Mapping action -> CostEntry for the three redesign actions."""
    entries: Mapping[str, CostEntry]

    def __post_init__(self):
        missing = [a for a in ACTIONS if a not in self.entries]
        unknown = [a for a in self.entries if a not in ACTIONS]
        if missing or unknown:
            raise InvalidParameterError(
                f"cost table must define exactly {list(ACTIONS)}; "
                f"missing={missing}, unknown={unknown}"
            )
        for action, entry in self.entries.items():
            if not np.isfinite(entry.fixed_cost):
                raise InvalidParameterError(
                    f"fixed_cost of '{action}' must be finite, got {entry.fixed_cost!r}"
                )
            if not (np.isfinite(entry.strength_multiplier)
                    and entry.strength_multiplier > 0):
                raise InvalidParameterError(
                    f"strength_multiplier of '{action}' must be > 0, "
                    f"got {entry.strength_multiplier!r}"
                )

    @classmethod
    def from_dict(cls, d: Mapping) -> "CostTable":
        """Build from ``{action: (fixed, multiplier)}`` or
        ``{action: {"fixed_cost": .., "strength_multiplier": ..}}``."""
        entries = {}
        for action, value in d.items():
            if isinstance(value, CostEntry):
                entries[action] = value
            elif isinstance(value, Mapping):
                entries[action] = CostEntry(
                    fixed_cost=float(value['fixed_cost']),
                    strength_multiplier=float(value['strength_multiplier']),
                )
            else:
                fixed, mult = value
                entries[action] = CostEntry(float(fixed), float(mult))
        return cls(entries=entries)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            a: {'fixed_cost': e.fixed_cost,
                'strength_multiplier': e.strength_multiplier}
            for a, e in self.items()
        }

    def __getitem__(self, action: str) -> CostEntry:
        return self.entries[action]

    def items(self) -> List[Tuple[str, CostEntry]]:
        """Entries in canonical action order."""
        return [(a, self.entries[a]) for a in ACTIONS]


@dataclass(frozen=True)
class DecisionOutcome:
    """Expected cost of one action over a set of strength samples."""
    action: str
    expected_cost: float
    failure_probability: float
    fixed_cost: float


@dataclass(frozen=True)
class DecisionResult:
    """Outcomes of all three actions, in canonical action order."""
    outcomes: Tuple[DecisionOutcome, ...]
    threshold: float
    cost_of_failure: float
    n_samples: int

    def __iter__(self) -> Iterator[DecisionOutcome]:
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)

    def sorted(self) -> List[DecisionOutcome]:
        """Outcomes by ascending expected cost (stable on ties)."""
        return sorted(self.outcomes, key=lambda o: o.expected_cost)

    @property
    def optimal(self) -> DecisionOutcome:
        return self.sorted()[0]

    def by_action(self, action: str) -> DecisionOutcome:
        for o in self.outcomes:
            if o.action == action:
                return o
        raise KeyError(action)


# ── Value of information ─────────────────────────────────────────────────

@dataclass(frozen=True)
class VoISample:
    """Decision taken after one hypothetical measurement is revealed."""
    hypothetical_measurement: float
    chosen_action: str
    resulting_expected_cost: float


@dataclass(frozen=True)
class EVPIResult:
    """Expected value of perfect information and its per-sample data."""
    prior_expected_cost: float
    prior_optimal_action: str
    expected_cost_with_information: float
    evpi: float
    samples: Tuple[VoISample, ...]

    @property
    def monte_carlo_standard_error(self) -> float:
        costs = np.array([s.resulting_expected_cost for s in self.samples])
        if len(costs) < 2:
            return 0.0
        return float(np.std(costs, ddof=1) / np.sqrt(len(costs)))


@dataclass(frozen=True)
class VoIBatchOutcome:
    """One simulated round of future tests in the EVI sweep."""
    noise_sd: float
    batch_index: int
    measurements: Tuple[float, ...]
    chosen_action: str
    expected_cost: float


@dataclass(frozen=True)
class VoISweepPoint:
    """Expected value of imperfect information at one test precision.

    Parameters
    ----------
    measurement_precision : float
        Std of the synthetic measurement noise (MPa).
    mean_expected_cost_with_data : float
        Mean over batches of the minimum expected cost after updating.
    monte_carlo_standard_error : float
        ``std(batch costs) / sqrt(n_batches)``.
    value_of_information : float
        ``baseline_expected_cost - mean_expected_cost_with_data``.
    """
    measurement_precision: float
    mean_expected_cost_with_data: float
    monte_carlo_standard_error: float
    value_of_information: float
    n_batches: int
    batches: Tuple[VoIBatchOutcome, ...] = ()


# ── MOTE ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MoteSample:
    """Characteristic value selected from one simulated test series."""
    n_tests: int
    mote_value: float


@dataclass(frozen=True)
class SampleSummary:
    """Descriptive statistics of the raw measurements."""
    n: int
    mean: float
    std: float
    min_val: float
    max_val: float
    normality_shapiro_p: Optional[float] = None
