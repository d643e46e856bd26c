"""Budget model for the adaptive QA loop.

Costs are rough USD estimates per model call, not billing data. The loop
uses them to stop before the spend would eat into the reserve held back for
the final playability analysis.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from config.models import AdaptiveConfig, CostConfig
from qa_types import CompletionReason
from utils import elapsed_ms, now_ms

MIN_SCREENSHOTS = 3
MAX_SCREENSHOTS = 20
POST_START_OFFSET_MS = 2000

DEFAULT_COSTS = CostConfig()
DEFAULT_RESERVED_FOR_FINAL_ANALYSIS = 0.10


def max_screenshots(
    budget: float,
    reserved: float = DEFAULT_RESERVED_FOR_FINAL_ANALYSIS,
    cost_per_screenshot: float = DEFAULT_COSTS.per_screenshot,
) -> int:
    """How many screenshots the budget affords, clamped to [3, 20]."""
    if cost_per_screenshot <= 0:
        raise ValueError("cost_per_screenshot must be positive")
    # 0.40 / 0.02 is 19.999999999999996 in binary floating point.
    quotient = round((budget - reserved) / cost_per_screenshot, 9)
    return max(MIN_SCREENSHOTS, min(math.floor(quotient), MAX_SCREENSHOTS))


def estimated_cost(
    action_count: int,
    screenshot_count: int,
    state_check_count: int = 0,
    costs: CostConfig = DEFAULT_COSTS,
) -> float:
    return (
        action_count * costs.per_action
        + screenshot_count * costs.per_screenshot
        + state_check_count * costs.per_state_check
    )


def distribute_screenshots(total_duration_ms: int, count: int) -> list[int]:
    """Capture offsets: start, post-start, end, and the rest evenly in between."""
    if count < MIN_SCREENSHOTS:
        raise ValueError(f"count must be at least {MIN_SCREENSHOTS}, got {count}")

    timestamps: list[float] = [0, POST_START_OFFSET_MS, total_duration_ms]
    remaining = count - MIN_SCREENSHOTS
    if remaining > 0:
        interval = (total_duration_ms - POST_START_OFFSET_MS) / (remaining + 1)
        timestamps.extend(POST_START_OFFSET_MS + interval * i for i in range(1, remaining + 1))
    return sorted(round(t) for t in timestamps)


@dataclass
class BudgetState:
    """Spend and counters for one loop run. Never shared between runs."""

    max_budget: float
    reserved_for_final_analysis: float
    max_screenshots: int
    max_actions: int
    max_duration_ms: float
    costs: CostConfig = field(default_factory=CostConfig)
    spent_estimate: float = 0.0
    screenshots_taken: int = 0
    actions_taken: int = 0
    state_checks: int = 0
    started_at: float = field(default_factory=now_ms)

    @classmethod
    def from_config(cls, config: AdaptiveConfig) -> "BudgetState":
        return cls(
            max_budget=config.max_budget,
            reserved_for_final_analysis=config.reserved_for_final_analysis,
            max_screenshots=max_screenshots(
                config.max_budget,
                config.reserved_for_final_analysis,
                config.costs.per_screenshot,
            ),
            max_actions=config.max_actions,
            max_duration_ms=config.max_duration_ms,
            costs=config.costs,
        )

    @property
    def available(self) -> float:
        return self.max_budget - self.reserved_for_final_analysis

    def elapsed_ms(self) -> float:
        return elapsed_ms(self.started_at)

    def record_screenshot(self) -> None:
        self.screenshots_taken += 1
        self.spent_estimate += self.costs.per_screenshot

    def record_action(self) -> None:
        self.actions_taken += 1
        self.spent_estimate += self.costs.per_action

    def record_state_check(self) -> None:
        self.state_checks += 1
        self.spent_estimate += self.costs.per_state_check

    def observation_cost(self, with_state_check: bool = False) -> float:
        """Projected cost of one more cycle: a screenshot plus a recommendation."""
        cost = self.costs.per_screenshot + self.costs.per_action
        if with_state_check:
            cost += self.costs.per_state_check
        return cost

    def would_exceed_budget(self, with_state_check: bool = False) -> bool:
        if self.screenshots_taken >= self.max_screenshots:
            return True
        projected = self.spent_estimate + self.observation_cost(with_state_check)
        # Tolerate float noise so an exactly-affordable cycle still runs.
        return round(projected, 9) > round(self.available, 9)

    def termination_reason(self, with_state_check: bool = False) -> Optional[CompletionReason]:
        """First exhausted limit, checked in duration, actions, budget order."""
        if self.elapsed_ms() >= self.max_duration_ms:
            return CompletionReason.MAX_DURATION
        if self.actions_taken >= self.max_actions:
            return CompletionReason.MAX_ACTIONS
        if self.would_exceed_budget(with_state_check):
            return CompletionReason.BUDGET_LIMIT
        return None

    def summary(self) -> dict:
        return {
            "spent_estimate": round(self.spent_estimate, 4),
            "screenshots_taken": self.screenshots_taken,
            "actions_taken": self.actions_taken,
            "state_checks": self.state_checks,
            "max_screenshots": self.max_screenshots,
        }
