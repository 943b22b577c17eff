"""Tests for the expected-cost decision rule."""

import numpy as np
import pytest

from yield_voi.constants import ACTIONS
from yield_voi.data_model import CostTable
from yield_voi.decision import DecisionEvaluator, default_cost_table, expected_costs
from yield_voi.errors import InsufficientDataError, InvalidParameterError


@pytest.fixture
def evaluator():
    return DecisionEvaluator()


class TestExpectedCosts:

    def test_outcomes_in_canonical_order(self, evaluator):
        result = evaluator.expected_costs([350.0, 320.0])
        assert [o.action for o in result] == list(ACTIONS)
        assert result.n_samples == 2

    def test_strong_material_needs_no_action(self, evaluator):
        result = evaluator.expected_costs(np.full(1000, 400.0))
        assert all(o.failure_probability == 0.0 for o in result)
        assert all(o.expected_cost == o.fixed_cost for o in result)
        assert result.optimal.action == "no_action"
        assert result.optimal.expected_cost == 0.0

    def test_weak_material_fails_under_every_action(self, evaluator):
        result = evaluator.expected_costs(np.full(1000, 100.0))
        assert all(o.failure_probability == 1.0 for o in result)
        assert result.optimal.action == "no_action"

    @pytest.mark.parametrize("strength, action, cost", [
        (280.0, "increase_resistance", 60_000.0),   # 308 MPa after x1.10
        (250.0, "change_operation", 150_000.0),     # 275 fails, 312.5 holds
        (100.0, "no_action", 1_000_000.0),          # every action fails
    ])
    def test_single_strength_decisions(self, evaluator, strength, action, cost):
        best = evaluator.optimal([strength])
        assert best.action == action
        assert best.expected_cost == pytest.approx(cost)

    def test_expected_cost_formula(self, evaluator):
        s = np.array([250.0, 290.0, 320.0, 380.0])
        result = evaluator.expected_costs(s)
        inc = result.by_action("increase_resistance")
        # 275 and 319 vs 300: one of four fails
        assert inc.failure_probability == pytest.approx(0.25)
        assert inc.expected_cost == pytest.approx(60_000 + 0.25 * 1e6)

    def test_failure_probability_grows_with_threshold(self):
        s = np.linspace(250.0, 400.0, 200)
        table = default_cost_table()
        low = expected_costs(s, 280.0, table)
        high = expected_costs(s, 340.0, table)
        for a in ACTIONS:
            assert high.by_action(a).failure_probability >= \
                low.by_action(a).failure_probability

    def test_ties_resolve_to_first_action(self):
        flat = CostTable.from_dict({a: (0.0, 1.0) for a in ACTIONS})
        result = expected_costs([310.0, 290.0], 300.0, flat)
        assert result.optimal.action == ACTIONS[0]

    def test_empty_sample_rejected(self, evaluator):
        with pytest.raises(InsufficientDataError):
            evaluator.expected_costs([])

    def test_non_finite_sample_rejected(self, evaluator):
        with pytest.raises(InvalidParameterError):
            evaluator.expected_costs([300.0, np.nan])

    def test_negative_failure_cost_rejected(self):
        with pytest.raises(InvalidParameterError):
            expected_costs([300.0], 300.0, default_cost_table(), cost_of_failure=-1.0)

    def test_sorted_is_ascending(self, evaluator):
        costs = [o.expected_cost for o in evaluator.expected_costs([295.0, 310.0]).sorted()]
        assert costs == sorted(costs)


class TestPerSampleCosts:

    def test_rows_match_single_sample_evaluation(self, evaluator):
        s = np.array([250.0, 280.0, 299.0, 300.0, 410.0])
        matrix = evaluator.per_sample_costs(s)
        assert matrix.shape == (5, 3)
        for row, value in zip(matrix, s):
            expected = [o.expected_cost for o in evaluator.expected_costs([value])]
            np.testing.assert_allclose(row, expected)

    def test_mean_of_rows_equals_expected_cost(self, evaluator):
        s = np.linspace(240.0, 380.0, 57)
        matrix = evaluator.per_sample_costs(s)
        expected = [o.expected_cost for o in evaluator.expected_costs(s)]
        np.testing.assert_allclose(matrix.mean(axis=0), expected)


class TestCostTable:

    def test_requires_all_actions(self):
        with pytest.raises(InvalidParameterError):
            CostTable.from_dict({"no_action": (0.0, 1.0)})

    def test_rejects_unknown_action(self):
        costs = {a: (0.0, 1.0) for a in ACTIONS}
        costs["retire"] = (1.0, 1.0)
        with pytest.raises(InvalidParameterError):
            CostTable.from_dict(costs)

    def test_multiplier_must_be_positive(self):
        costs = {a: (0.0, 1.0) for a in ACTIONS}
        costs["change_operation"] = (0.0, 0.0)
        with pytest.raises(InvalidParameterError):
            CostTable.from_dict(costs)

    def test_dict_round_trip(self):
        table = default_cost_table()
        assert CostTable.from_dict(table.to_dict()) == table
