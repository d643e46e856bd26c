"""Unit tests for the budget model."""
from __future__ import annotations

import pytest

from budget import BudgetState, distribute_screenshots, estimated_cost, max_screenshots
from config import AdaptiveConfig, CostConfig
from qa_types import CompletionReason


class TestMaxScreenshots:
    """Screenshot allowance is floor((budget - reserve) / cost) clamped to [3, 20]."""

    def test_default_budget(self):
        assert max_screenshots(0.50, 0.10, 0.02) == 20

    def test_exact_division_not_lost_to_float_noise(self):
        assert max_screenshots(0.30, 0.10, 0.02) == 10

    @pytest.mark.parametrize("budget", [0.12, 0.15])
    def test_clamped_to_minimum(self, budget):
        assert max_screenshots(budget, 0.10, 0.02) == 3

    @pytest.mark.parametrize("budget", [2.00, 5.0])
    def test_clamped_to_maximum(self, budget):
        assert max_screenshots(budget, 0.10, 0.02) == 20

    def test_floor(self):
        assert max_screenshots(0.25, 0.10, 0.02) == 7

    def test_non_positive_cost_rejected(self):
        with pytest.raises(ValueError):
            max_screenshots(0.5, 0.1, 0)


class TestDistributeScreenshots:
    def test_minimum_count(self):
        assert distribute_screenshots(60000, 3) == [0, 2000, 60000]

    def test_extra_points_evenly_spaced(self):
        assert distribute_screenshots(10000, 5) == [0, 2000, 4667, 7333, 10000]

    def test_sorted_and_sized(self):
        offsets = distribute_screenshots(240000, 20)
        assert len(offsets) == 20
        assert offsets == sorted(offsets)
        assert offsets[0] == 0 and offsets[-1] == 240000

    def test_duration_shorter_than_settle_point(self):
        offsets = distribute_screenshots(1000, 5)
        assert offsets == [0, 1000, 1333, 1667, 2000]

    @pytest.mark.parametrize(
        "duration,count",
        [(0, 3), (1000, 5), (2000, 4), (10000, 3), (10000, 5), (60000, 8), (240000, 20), (7, 11)],
    )
    def test_length_order_and_anchors(self, duration, count):
        offsets = distribute_screenshots(duration, count)

        assert len(offsets) == count
        assert offsets == sorted(offsets)
        assert 0 in offsets
        assert 2000 in offsets
        assert duration in offsets

    def test_count_below_minimum_rejected(self):
        with pytest.raises(ValueError):
            distribute_screenshots(10000, 2)


class TestEstimatedCost:
    def test_five_actions_six_screenshots(self):
        assert estimated_cost(5, 6, 0) == pytest.approx(0.22)

    def test_default_costs(self):
        assert estimated_cost(3, 4, 1) == pytest.approx(3 * 0.02 + 4 * 0.02 + 0.03)

    def test_custom_costs(self):
        costs = CostConfig(per_action=0.1, per_screenshot=0.01, per_state_check=0.0)
        assert estimated_cost(2, 2, 5, costs) == pytest.approx(0.22)


class TestBudgetState:
    """Termination order is duration, then actions, then budget."""

    def make_state(self, **overrides) -> BudgetState:
        config = AdaptiveConfig(**overrides)
        return BudgetState.from_config(config)

    def test_from_config(self):
        state = self.make_state(max_budget=0.3, reserved_for_final_analysis=0.1, max_actions=7)
        assert state.max_screenshots == 10
        assert state.max_actions == 7
        assert state.available == pytest.approx(0.2)

    def test_records_accumulate_spend(self):
        state = self.make_state()
        state.record_screenshot()
        state.record_action()
        state.record_state_check()
        assert state.spent_estimate == pytest.approx(0.07)
        assert (state.screenshots_taken, state.actions_taken, state.state_checks) == (1, 1, 1)

    def test_no_limit_reached(self):
        assert self.make_state().termination_reason() is None

    def test_duration_limit_first(self):
        state = self.make_state(max_actions=1, max_duration_ms=1000)
        state.actions_taken = 1
        state.started_at -= 5000
        assert state.termination_reason() == CompletionReason.MAX_DURATION

    def test_action_limit(self):
        state = self.make_state(max_actions=2)
        state.actions_taken = 2
        assert state.termination_reason() == CompletionReason.MAX_ACTIONS

    def test_screenshot_cap_hits_budget_limit(self):
        state = self.make_state(max_budget=0.2, reserved_for_final_analysis=0.1)
        state.screenshots_taken = state.max_screenshots
        assert state.termination_reason() == CompletionReason.BUDGET_LIMIT

    def test_projected_spend_hits_budget_limit(self):
        state = self.make_state(max_budget=0.5, reserved_for_final_analysis=0.1)
        state.spent_estimate = 0.37
        assert state.would_exceed_budget() is True

    def test_exactly_affordable_cycle_runs(self):
        state = self.make_state(max_budget=0.5, reserved_for_final_analysis=0.1)
        state.spent_estimate = 0.36
        assert state.would_exceed_budget() is False
        assert state.would_exceed_budget(with_state_check=True) is True

    def test_summary(self):
        state = self.make_state()
        state.record_screenshot()
        summary = state.summary()
        assert summary["screenshots_taken"] == 1
        assert summary["max_screenshots"] == 20
