"""
Report tables as plain data.

Each builder returns a ``Table`` (title, headers, rows of plain Python
values); ``write_table_csv`` is the only place that touches the file
system.
"""

import csv
import os
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .constants import ACTION_LABELS
from .data_model import (
    DecisionResult, EVPIResult, MeasurementSet, PosteriorEnsemble, VoISweepPoint,
)
from .decision import DecisionEvaluator


@dataclass(frozen=True)
class Table:
    title: str
    headers: Tuple[str, ...]
    rows: Tuple[Tuple, ...]


def raw_data_table(measurements: MeasurementSet) -> Table:
    return Table(
        title="Measured yield strength",
        headers=("id", "yield_MPa"),
        rows=tuple(zip(measurements.ids, measurements.values.tolist())),
    )


def decision_inputs_table(evaluator: DecisionEvaluator) -> Table:
    """Threshold, failure cost and each action's cost and factor."""
    rows: List[Tuple] = [
        ("Threshold", "strength (MPa)", evaluator.threshold),
        ("Failure", "cost", evaluator.cost_of_failure),
    ]
    for action, entry in evaluator.cost_table.items():
        label = ACTION_LABELS.get(action, action)
        rows.append((label, "fixed cost", entry.fixed_cost))
        rows.append((label, "strength multiplier", entry.strength_multiplier))
    return Table(
        title="Decision inputs",
        headers=("item", "parameter", "value"),
        rows=tuple(rows),
    )


def decision_table(result: DecisionResult) -> Table:
    best = result.optimal.action
    return Table(
        title="Expected cost by action",
        headers=("action", "fixed_cost", "failure_probability",
                 "expected_cost", "optimal"),
        rows=tuple(
            (o.action, o.fixed_cost, o.failure_probability, o.expected_cost,
             o.action == best)
            for o in result
        ),
    )


def posterior_summary_table(ensemble: PosteriorEnsemble,
                            quantiles: Sequence[float] = (0.05, 0.5, 0.95)) -> Table:
    headers = ("quantity", "mean", "sd") + tuple(f"q{100 * q:g}" for q in quantiles)
    rows = []
    for name, values in (("mu", ensemble.mean), ("sigma", ensemble.std),
                         ("predicted_yield", ensemble.predicted_yield)):
        qs = np.quantile(values, quantiles)
        rows.append((name, float(np.mean(values)), float(np.std(values, ddof=1)))
                    + tuple(float(q) for q in qs))
    return Table(title="Posterior summary", headers=headers, rows=tuple(rows))


def voi_table(evpi: EVPIResult, sweep: Sequence[VoISweepPoint]) -> Table:
    """EVPI followed by one row per test precision."""
    rows = [("perfect", evpi.expected_cost_with_information,
             evpi.monte_carlo_standard_error, evpi.evpi, len(evpi.samples))]
    for p in sweep:
        rows.append((p.measurement_precision, p.mean_expected_cost_with_data,
                     p.monte_carlo_standard_error, p.value_of_information,
                     p.n_batches))
    return Table(
        title="Value of information",
        headers=("measurement_sd", "expected_cost_with_data", "mcse",
                 "value_of_information", "n_simulations"),
        rows=tuple(rows),
    )


def write_table_csv(table: Table, filepath: str) -> str:
    directory = os.path.dirname(filepath)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(filepath, 'w', encoding='utf-8', newline='') as fh:
        writer = csv.writer(fh)
        writer.writerow(table.headers)
        writer.writerows(table.rows)
    return filepath
