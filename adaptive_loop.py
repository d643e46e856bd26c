"""Budget-constrained adaptive QA loop."""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from budget import BudgetState
from config.models import AdaptiveConfig
from driver import BrowserDriver
from exceptions import TestPhase, categorize_error
from interactor import GameInteractor, RecommendationExecutor
from qa_types import ActionRecord, CompletionReason, LoopResult, StrategyContext
from start_detection import StrategyOrchestrator
from utils import sanitize_html, with_timeout

START_GOAL = "Find and click the start/play button to begin the game"
PLAY_GOAL = "Continue playing and progress through the game"


class LoopPhase(str, Enum):
    BOOTSTRAP = "bootstrap"
    ITERATING = "iterating"
    TERMINATED = "terminated"


class AdaptiveQALoop:
    """Starts the game, then plays it one model recommendation at a time.

    Every cycle checks, in order, the duration limit, the action limit and the
    budget (screenshot cap, or the projected cost of one more observation
    against ``max_budget - reserved``). Recoverable failures inside a cycle
    are logged and counted as a spent action so the loop always converges.
    """

    def __init__(
        self,
        orchestrator: StrategyOrchestrator,
        reasoning,
        interactor: GameInteractor,
        config: AdaptiveConfig,
        executor: Optional[RecommendationExecutor] = None,
        metadata: Optional[dict[str, Any]] = None,
        start_goal: str = START_GOAL,
        logger: Optional[logging.Logger] = None,
    ):
        self.orchestrator = orchestrator
        self.reasoning = reasoning
        self.interactor = interactor
        self.config = config
        self.metadata = metadata or {}
        self.start_goal = start_goal
        self.logger = logger or logging.getLogger("adaptive_loop")
        self.executor = executor or RecommendationExecutor(logger=self.logger)
        self.phase = LoopPhase.BOOTSTRAP
        self.budget: Optional[BudgetState] = None

    async def run(self, driver: BrowserDriver) -> LoopResult:
        budget = BudgetState.from_config(self.config)
        self.budget = budget
        screenshots: list[Path] = []
        actions: list[ActionRecord] = []

        self.phase = LoopPhase.BOOTSTRAP
        self.logger.info(
            f"=== Adaptive QA loop (budget ${self.config.max_budget:.2f}, "
            f"max {budget.max_screenshots} screenshots, {self.config.max_actions} actions) ==="
        )
        state = await self.interactor.capture_state(driver, "pre_start")
        budget.record_screenshot()
        screenshots.append(state.screenshot_path)

        ctx = StrategyContext(
            driver=driver,
            goal=self.start_goal,
            screenshot_path=state.screenshot_path,
            html=state.html,
            metadata=self.metadata,
        )
        bootstrap = await self.orchestrator.resolve(ctx)
        if not bootstrap.success:
            self.phase = LoopPhase.TERMINATED
            self.logger.warning(f"Could not start the game: {bootstrap.error_message}")
            return LoopResult(
                success=False,
                completion_reason=CompletionReason.BOOTSTRAP_FAILED,
                bootstrap=bootstrap,
                screenshots=screenshots,
                estimated_cost=budget.spent_estimate,
            )

        self.phase = LoopPhase.ITERATING
        previous_screenshot = state.screenshot_path
        reason: Optional[CompletionReason] = None

        while reason is None:
            check_progress = self.config.check_progression and bool(actions)
            reason = budget.termination_reason(with_state_check=check_progress)
            if reason is not None:
                break

            cycle = budget.actions_taken + 1
            self.logger.info(
                f"Cycle {cycle}/{self.config.max_actions} "
                f"(spent ~${budget.spent_estimate:.2f}, {budget.elapsed_ms() / 1000:.1f}s)"
            )
            counted = False
            try:
                state = await self.interactor.capture_state(driver, f"cycle-{cycle:02d}")
                budget.record_screenshot()
                screenshots.append(state.screenshot_path)

                if check_progress:
                    progressed = await with_timeout(
                        self.reasoning.has_state_progressed(previous_screenshot, state.screenshot_path),
                        self.config.action_timeout_ms,
                        "Progression check timed out",
                    )
                    budget.record_state_check()
                    actions[-1].state_progressed = progressed
                    if not progressed:
                        self.logger.warning(f"State did not progress after {actions[-1].action}")
                previous_screenshot = state.screenshot_path

                recommendation = await with_timeout(
                    self.reasoning.recommend_action(
                        sanitize_html(state.html),
                        state.screenshot_path,
                        [a.to_dict() for a in actions],
                        PLAY_GOAL,
                        self.metadata,
                    ),
                    self.config.action_timeout_ms,
                    "Action recommendation timed out",
                )
                budget.record_action()
                counted = True

                if recommendation.action == "complete":
                    self.logger.info(f"Model reports completion: {recommendation.reasoning}")
                    reason = CompletionReason.LLM_COMPLETE
                    break

                outcome = await self.executor.execute(driver, recommendation, self.config.action_timeout_ms)
                steps = [recommendation, *recommendation.alternatives]
                taken = steps[outcome.attempts - 1] if outcome.success else recommendation
                actions.append(
                    ActionRecord(
                        action=taken.action,
                        target=taken.target,
                        reasoning=taken.reasoning,
                        success=outcome.success,
                    )
                )
            except Exception as e:
                error = categorize_error(e, TestPhase.ADAPTIVE_QA_LOOP)
                if not error.recoverable:
                    self.phase = LoopPhase.TERMINATED
                    raise error
                self.logger.warning(f"Cycle {cycle} failed ({error.category.value}): {error.message}")
                if not counted:
                    budget.record_action()

            await asyncio.sleep(self.config.settle_delay_ms / 1000)

        self.phase = LoopPhase.TERMINATED
        self.logger.info(f"Adaptive loop finished: {reason.value} {budget.summary()}")
        return LoopResult(
            success=True,
            completion_reason=reason,
            bootstrap=bootstrap,
            actions=actions,
            screenshots=screenshots,
            state_checks=budget.state_checks,
            estimated_cost=budget.spent_estimate,
        )
