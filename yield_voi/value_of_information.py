"""
Expected value of perfect and imperfect information.

EVPI treats every posterior-predictive strength as a hypothetical true
value revealed before deciding.  EVI simulates future test rounds of
``n_tests`` noisy measurements, refits the hierarchical model on the
augmented data and re-evaluates the decision; the drop in mean
expected cost relative to deciding now is the value of that test plan.

Every batch in the EVI sweep draws its measurement noise from
``derive_seed(seed, "evi_batch_noise", b)`` and its refit seed from
``derive_seed(seed, "evi_batch_posterior", b)``.  The same batch index
therefore sees the same standard-normal noise pattern at every noise
level (common random numbers), which keeps the sweep's comparison
between precisions tight for a given number of batches.
"""

import warnings
from concurrent.futures import as_completed
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .constants import (
    DEFAULT_EPSILON, DEFAULT_NOISE_LEVELS, DEFAULT_N_TESTS,
    DEFAULT_PARALLEL_BACKEND, DEFAULT_SEED,
    DEFAULT_VOI_N_CHAINS, DEFAULT_VOI_N_DRAWS, DEFAULT_VOI_N_WARMUP,
    MONOTONIC_N_SIGMA,
)
from .data_model import (
    CostTable, EVPIResult, PosteriorEnsemble, VoIBatchOutcome, VoISample,
    VoISweepPoint,
)
from .decision import DecisionEvaluator, expected_costs, per_sample_costs
from .errors import InsufficientDataError, InvalidParameterError
from .hierarchical_model import (
    HierarchicalYieldModel, broadcast_epsilon, check_backend, check_workers,
    make_executor,
)
from .random_stream import RandomStream, derive_seed

ProgressHook = Callable[[str, int, int], None]
SamplesLike = Union[PosteriorEnsemble, Sequence[float], np.ndarray]

_ROUNDOFF = 1e-9


def _predictive(samples: SamplesLike) -> np.ndarray:
    if isinstance(samples, PosteriorEnsemble):
        return np.asarray(samples.predicted_yield, dtype=float)
    return np.asarray(samples, dtype=float).ravel()


def _clip_roundoff(value: float, scale: float) -> float:
    if value < 0 and abs(value) <= _ROUNDOFF * max(1.0, abs(scale)):
        return 0.0
    return value


def expected_value_of_perfect_information(
    samples: SamplesLike,
    threshold: float,
    cost_table: CostTable,
    cost_of_failure: Optional[float] = None,
) -> EVPIResult:
    """EVPI over the predictive strengths of *samples*.

    The baseline is the minimum expected cost over the whole ensemble.
    Each predictive strength ``s`` is then treated as revealed: the
    optimal action of ``expected_costs([s], ...)`` and its cost are
    recorded as a :class:`VoISample`.  EVPI is the baseline minus the
    mean recorded cost, and cannot be negative.
    """
    strengths = _predictive(samples)
    kwargs = {} if cost_of_failure is None else {'cost_of_failure': cost_of_failure}
    baseline = expected_costs(strengths, threshold, cost_table, **kwargs).optimal

    costs = per_sample_costs(strengths, threshold, cost_table, **kwargs)
    # argmin returns the first minimum, i.e. canonical action order on ties
    chosen = np.argmin(costs, axis=1)
    chosen_cost = costs[np.arange(len(strengths)), chosen]
    actions = [a for a, _ in cost_table.items()]

    with_info = float(np.mean(chosen_cost))
    evpi = _clip_roundoff(baseline.expected_cost - with_info, baseline.expected_cost)
    return EVPIResult(
        prior_expected_cost=baseline.expected_cost,
        prior_optimal_action=baseline.action,
        expected_cost_with_information=with_info,
        evpi=evpi,
        samples=tuple(
            VoISample(
                hypothetical_measurement=float(s),
                chosen_action=actions[int(a)],
                resulting_expected_cost=float(c),
            )
            for s, a, c in zip(strengths, chosen, chosen_cost)
        ),
    )


def partition_batches(strengths, n_tests: int,
                      max_batches: Optional[int] = None) -> np.ndarray:
    """Disjoint consecutive batches of *n_tests* strengths.

    The incomplete trailing batch is dropped.  Returns an array of
    shape ``(n_batches, n_tests)``.
    """
    s = np.asarray(strengths, dtype=float).ravel()
    if n_tests < 1:
        raise InvalidParameterError(f"n_tests must be >= 1, got {n_tests}")
    n_batches = len(s) // n_tests
    if max_batches is not None:
        if max_batches < 1:
            raise InvalidParameterError(f"max_batches must be >= 1, got {max_batches}")
        n_batches = min(n_batches, int(max_batches))
    if n_batches < 1:
        raise InsufficientDataError(
            "evi_sweep", len(s), n_tests,
            "Not enough predictive samples for one batch of tests.",
        )
    return s[:n_batches * n_tests].reshape(n_batches, n_tests)


def check_monotonic(points: Sequence[VoISweepPoint],
                    n_sigma: float = MONOTONIC_N_SIGMA) -> List[Tuple[float, float]]:
    """Pairs of precisions where VoI rises with noise beyond MC tolerance.

    Less precise testing cannot be worth more than more precise testing;
    a violation larger than ``n_sigma`` combined standard errors signals
    too few Monte-Carlo batches.
    """
    ordered = sorted(points, key=lambda p: p.measurement_precision)
    violations = []
    for i, lo in enumerate(ordered):
        for hi in ordered[i + 1:]:
            tol = n_sigma * float(np.hypot(lo.monte_carlo_standard_error,
                                           hi.monte_carlo_standard_error))
            if hi.value_of_information > lo.value_of_information + tol:
                violations.append((lo.measurement_precision, hi.measurement_precision))
    return violations


class ValueOfInformationEngine:
    """Preposterior analysis of additional yield-strength testing.

    Parameters
    ----------
    model : HierarchicalYieldModel
        Model refitted for every simulated test round.
    evaluator : DecisionEvaluator
        Decision rule applied to each updated posterior.
    measurements : array_like
        Existing measurements.
    epsilon : float or array_like
        Noise std of the existing measurements.
    n_chains, n_draws_per_chain, n_warmup : int
        Sampler layout for the per-batch refits.
    seed : int
        Master seed of the sweep.
    max_workers : int or None
        Pool size for batches; ``1`` runs serially in the calling process.
    progress : callable or None
        ``progress("evi_sweep", batches_done, batches_total)``, always
        called from the calling process.
    backend : str
        ``"process"`` or ``"thread"`` pool for the batches.  The engine
        is pickled into process workers without its progress hook.
    """

    def __init__(
        self,
        model: HierarchicalYieldModel,
        evaluator: DecisionEvaluator,
        measurements,
        epsilon=DEFAULT_EPSILON,
        n_chains: int = DEFAULT_VOI_N_CHAINS,
        n_draws_per_chain: int = DEFAULT_VOI_N_DRAWS,
        n_warmup: int = DEFAULT_VOI_N_WARMUP,
        seed: int = DEFAULT_SEED,
        max_workers: Optional[int] = None,
        progress: Optional[ProgressHook] = None,
        backend: str = DEFAULT_PARALLEL_BACKEND,
    ):
        self.model = model
        self.evaluator = evaluator
        self.measurements = np.asarray(measurements, dtype=float).ravel()
        if self.measurements.size == 0:
            raise InsufficientDataError("ValueOfInformationEngine", 0, 1)
        self.epsilon = broadcast_epsilon(epsilon, self.measurements.size)
        self.n_chains = n_chains
        self.n_draws_per_chain = n_draws_per_chain
        self.n_warmup = n_warmup
        self.seed = seed
        check_workers(max_workers)
        self.max_workers = max_workers
        self.progress = progress
        self.backend = check_backend(backend)

    def __getstate__(self):
        state = self.__dict__.copy()
        state['progress'] = None
        return state

    # ── EVPI ─────────────────────────────────────────────────────────

    def baseline(self, samples: SamplesLike):
        """Decision result of deciding now, on the current posterior."""
        return self.evaluator.expected_costs(_predictive(samples))

    def evpi(self, samples: SamplesLike) -> EVPIResult:
        return expected_value_of_perfect_information(
            samples, self.evaluator.threshold, self.evaluator.cost_table,
            self.evaluator.cost_of_failure,
        )

    # ── EVI sweep ────────────────────────────────────────────────────

    def _batch_noise(self, batch_index: int, n_tests: int) -> np.ndarray:
        rng = RandomStream(derive_seed(self.seed, "evi_batch_noise", batch_index))
        return rng.standard_normal(n_tests)

    def run_batch(self, true_strengths: np.ndarray, noise_sd: float,
                  batch_index: int) -> VoIBatchOutcome:
        """Simulate one test round, refit and decide."""
        true_strengths = np.asarray(true_strengths, dtype=float)
        n_tests = len(true_strengths)
        synthetic = true_strengths + noise_sd * self._batch_noise(batch_index, n_tests)
        augmented = np.concatenate([self.measurements, synthetic])
        eps = np.concatenate([self.epsilon, np.full(n_tests, float(noise_sd))])

        updated = self.model.posterior_sample(
            augmented, eps,
            n_chains=self.n_chains,
            n_draws_per_chain=self.n_draws_per_chain,
            n_warmup=self.n_warmup,
            seed=derive_seed(self.seed, "evi_batch_posterior", batch_index),
            max_workers=1,
        )
        best = self.evaluator.optimal(updated.predicted_yield)
        return VoIBatchOutcome(
            noise_sd=float(noise_sd),
            batch_index=int(batch_index),
            measurements=tuple(float(v) for v in synthetic),
            chosen_action=best.action,
            expected_cost=float(best.expected_cost),
        )

    def evi_sweep(
        self,
        samples: SamplesLike,
        noise_levels: Sequence[float] = DEFAULT_NOISE_LEVELS,
        n_tests: int = DEFAULT_N_TESTS,
        max_batches: Optional[int] = None,
    ) -> List[VoISweepPoint]:
        """Expected value of imperfect information per noise level.

        Returns one :class:`VoISweepPoint` per entry of *noise_levels*,
        in the given order.
        """
        levels = [float(v) for v in noise_levels]
        if not levels:
            raise InvalidParameterError("noise_levels must not be empty")
        if any(not (np.isfinite(v) and v > 0) for v in levels):
            raise InvalidParameterError(
                f"noise levels must be finite and > 0, got {levels}"
            )
        strengths = _predictive(samples)
        baseline_cost = self.baseline(strengths).optimal.expected_cost
        batches = partition_batches(strengths, n_tests, max_batches)

        tasks = [(li, b) for li in range(len(levels)) for b in range(len(batches))]
        total = len(tasks)
        outcomes: Dict[Tuple[int, int], VoIBatchOutcome] = {}

        if self.max_workers == 1:
            for li, b in tasks:
                outcomes[(li, b)] = self.run_batch(batches[b], levels[li], b)
                self._report(len(outcomes), total)
        else:
            with make_executor(self.backend, self.max_workers) as pool:
                futures = {
                    pool.submit(self.run_batch, batches[b], levels[li], b): (li, b)
                    for li, b in tasks
                }
                for fut in as_completed(futures):
                    outcomes[futures[fut]] = fut.result()
                    self._report(len(outcomes), total)

        points = []
        for li, level in enumerate(levels):
            level_outcomes = tuple(outcomes[(li, b)] for b in range(len(batches)))
            costs = np.array([o.expected_cost for o in level_outcomes])
            mean_cost = float(np.mean(costs))
            mcse = (float(np.std(costs, ddof=1) / np.sqrt(len(costs)))
                    if len(costs) > 1 else 0.0)
            points.append(VoISweepPoint(
                measurement_precision=level,
                mean_expected_cost_with_data=mean_cost,
                monte_carlo_standard_error=mcse,
                value_of_information=baseline_cost - mean_cost,
                n_batches=len(level_outcomes),
                batches=level_outcomes,
            ))

        violations = check_monotonic(points)
        if violations:
            warnings.warn(
                f"Value of information increases with measurement noise beyond "
                f"Monte-Carlo tolerance at {violations}; increase the number "
                f"of batches or posterior draws.",
                stacklevel=2,
            )
        return points

    def _report(self, done: int, total: int) -> None:
        if self.progress is not None:
            self.progress("evi_sweep", done, total)
