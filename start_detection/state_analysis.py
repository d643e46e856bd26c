"""State-analysis strategy: ask the model for one recommended action and run it."""
from __future__ import annotations

import logging
from typing import Optional

from exceptions import TestPhase
from interactor import RecommendationExecutor
from qa_types import Outcome, StrategyContext, StrategyKind
from screenshots import ScreenshotStore
from start_detection.base import StartStrategy
from utils import sanitize_html, with_timeout


class StateAnalysisStrategy(StartStrategy):
    kind = StrategyKind.STATE_ANALYSIS
    name = "state_analysis"

    def __init__(
        self,
        reasoning,
        store: ScreenshotStore,
        executor: Optional[RecommendationExecutor] = None,
        post_click_delay_ms: float = 2000,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(post_click_delay_ms, logger)
        self.reasoning = reasoning
        self.store = store
        self.executor = executor or RecommendationExecutor(logger=self.logger)

    def is_available(self) -> bool:
        return self.reasoning is not None

    async def _execute(self, ctx: StrategyContext, timeout_ms: float, started: float) -> Outcome:
        driver = ctx.driver
        html = ctx.html if ctx.html is not None else await driver.get_html()
        if ctx.screenshot_path is not None:
            screenshot_path = ctx.screenshot_path
        else:
            screenshot_path = await self.store.capture(driver, "pre_start")

        recommendation = await with_timeout(
            self.reasoning.recommend_action(
                sanitize_html(html),
                screenshot_path,
                [a.to_dict() for a in ctx.prior_actions],
                ctx.goal,
                ctx.metadata,
            ),
            self._remaining(started, timeout_ms),
            "State analysis timed out",
        )
        self.logger.debug(
            f"Recommendation {recommendation.action} (confidence {recommendation.confidence:.2f}): "
            f"{recommendation.reasoning}"
        )

        result = await self.executor.execute(
            driver,
            recommendation,
            self._remaining(started, timeout_ms),
            strategy_name=self.name,
            phase=TestPhase.START_BUTTON_DETECTION,
        )
        if result.success and recommendation.action != "complete":
            await self._settle()
        # Report the strategy's own elapsed time rather than the executor's.
        return self._outcome(
            started,
            success=result.success,
            attempts=result.attempts,
            coordinates=result.coordinates,
            error_message=result.error_message,
        )
