"""
Expected-cost evaluation of the three redesign actions.

For each action the sampled strengths are scaled by the action's
strength multiplier; the fraction falling below the threshold is the
Monte-Carlo failure probability, and

    expected_cost = fixed_cost + p_fail * cost_of_failure
"""

from typing import Optional

import numpy as np

from .constants import ACTIONS, DEFAULT_COST_OF_FAILURE, DEFAULT_COSTS, DEFAULT_THRESHOLD_MPA
from .data_model import CostTable, DecisionOutcome, DecisionResult
from .errors import InsufficientDataError, InvalidParameterError


def default_cost_table() -> CostTable:
    return CostTable.from_dict(DEFAULT_COSTS)


def _check_inputs(samples: np.ndarray, threshold: float, cost_of_failure: float,
                  stage: str) -> None:
    if samples.size == 0:
        raise InsufficientDataError(
            stage, 0, 1, "Failure probability is undefined for an empty sample."
        )
    if not np.all(np.isfinite(samples)):
        raise InvalidParameterError(f"{stage}: strength samples must be finite")
    if not np.isfinite(threshold):
        raise InvalidParameterError(f"{stage}: threshold must be finite")
    if not (np.isfinite(cost_of_failure) and cost_of_failure >= 0):
        raise InvalidParameterError(f"{stage}: cost_of_failure must be >= 0")


def expected_costs(
    strength_samples,
    threshold: float,
    cost_table: CostTable,
    cost_of_failure: float = DEFAULT_COST_OF_FAILURE,
) -> DecisionResult:
    """Expected cost of every action over *strength_samples*.

    Raises
    ------
    InsufficientDataError
        *strength_samples* is empty.
    """
    s = np.asarray(strength_samples, dtype=float).ravel()
    _check_inputs(s, threshold, cost_of_failure, "expected_costs")

    outcomes = []
    for action, entry in cost_table.items():
        effective = s * entry.strength_multiplier
        p_fail = float(np.count_nonzero(effective < threshold)) / s.size
        outcomes.append(DecisionOutcome(
            action=action,
            expected_cost=entry.fixed_cost + p_fail * cost_of_failure,
            failure_probability=p_fail,
            fixed_cost=entry.fixed_cost,
        ))
    return DecisionResult(
        outcomes=tuple(outcomes),
        threshold=float(threshold),
        cost_of_failure=float(cost_of_failure),
        n_samples=int(s.size),
    )


def per_sample_costs(
    strength_samples,
    threshold: float,
    cost_table: CostTable,
    cost_of_failure: float = DEFAULT_COST_OF_FAILURE,
) -> np.ndarray:
    """Cost matrix of shape ``(n_samples, n_actions)``.

    Row ``i`` equals the expected costs of ``expected_costs([s_i], ...)``;
    computing all rows at once avoids building one result per sample.
    """
    s = np.asarray(strength_samples, dtype=float).ravel()
    _check_inputs(s, threshold, cost_of_failure, "per_sample_costs")
    fixed = np.array([e.fixed_cost for _, e in cost_table.items()])
    mult = np.array([e.strength_multiplier for _, e in cost_table.items()])
    fails = (s[:, None] * mult[None, :]) < threshold
    return fixed[None, :] + fails * cost_of_failure


class DecisionEvaluator:
    """Expected-cost decision rule bound to a threshold and cost table.

    Parameters
    ----------
    threshold : float
        Required strength (MPa).
    cost_table : CostTable or None
        Defaults to :data:`constants.DEFAULT_COSTS`.
    cost_of_failure : float
        Cost incurred when the effective strength is below *threshold*.
    """

    def __init__(self, threshold: float = DEFAULT_THRESHOLD_MPA,
                 cost_table: Optional[CostTable] = None,
                 cost_of_failure: float = DEFAULT_COST_OF_FAILURE):
        self.threshold = float(threshold)
        self.cost_table = cost_table if cost_table is not None else default_cost_table()
        self.cost_of_failure = float(cost_of_failure)

    def __repr__(self) -> str:
        return (
            f"DecisionEvaluator(threshold={self.threshold:g}, "
            f"cost_of_failure={self.cost_of_failure:g})"
        )

    def expected_costs(self, strength_samples) -> DecisionResult:
        return expected_costs(strength_samples, self.threshold,
                              self.cost_table, self.cost_of_failure)

    def optimal(self, strength_samples) -> DecisionOutcome:
        return self.expected_costs(strength_samples).optimal

    def per_sample_costs(self, strength_samples) -> np.ndarray:
        return per_sample_costs(strength_samples, self.threshold,
                                self.cost_table, self.cost_of_failure)

    @property
    def actions(self):
        return ACTIONS
