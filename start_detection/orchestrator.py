"""Runs start strategies in order until one activates the start control."""
from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from config.models import DetectionConfig, StrategyFlags
from exceptions import TestPhase, categorize_error
from interactor import RecommendationExecutor
from qa_types import Outcome, StrategyContext
from screenshots import ScreenshotStore
from start_detection.base import StartStrategy
from start_detection.natural_language import NaturalLanguageStrategy
from start_detection.selector import SelectorStrategy
from start_detection.state_analysis import StateAnalysisStrategy
from start_detection.vision import VisionStrategy
from utils import with_timeout


def build_start_strategies(
    detection: DetectionConfig,
    store: ScreenshotStore,
    reasoning=None,
    executor: Optional[RecommendationExecutor] = None,
    logger: Optional[logging.Logger] = None,
) -> list[StartStrategy]:
    """Canonical order: selector, natural language, vision, state analysis."""
    delay = detection.post_click_delay_ms
    return [
        SelectorStrategy(
            selectors=detection.selectors,
            visibility_timeout_ms=detection.visibility_timeout_ms,
            post_click_delay_ms=delay,
            logger=logger,
        ),
        NaturalLanguageStrategy(phrases=detection.phrases, post_click_delay_ms=delay, logger=logger),
        VisionStrategy(
            reasoning,
            store,
            keywords=detection.start_keywords,
            min_confidence=detection.min_confidence,
            post_click_delay_ms=delay,
            logger=logger,
        ),
        StateAnalysisStrategy(reasoning, store, executor=executor, post_click_delay_ms=delay, logger=logger),
    ]


class StrategyOrchestrator:
    """Tries each enabled, available strategy under one shared deadline."""

    def __init__(
        self,
        strategies: Sequence[StartStrategy],
        flags: StrategyFlags,
        timeout_ms: float = 90000,
        logger: Optional[logging.Logger] = None,
    ):
        self.timeout_ms = timeout_ms
        self.logger = logger or logging.getLogger("start_detection")
        self.strategies = [s for s in strategies if flags.is_enabled(s.kind) and s.is_available()]

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self.strategies]

    async def resolve(self, ctx: StrategyContext) -> Outcome:
        """Return the first successful Outcome, or a synthetic failure."""
        started = time.monotonic()
        deadline = started + self.timeout_ms / 1000
        total = len(self.strategies)
        tried = 0
        self.logger.info(f"=== Start detection: {self.strategy_names} (timeout {self.timeout_ms:.0f}ms) ===")

        for index, strategy in enumerate(self.strategies, 1):
            remaining_ms = (deadline - time.monotonic()) * 1000
            if remaining_ms <= 0:
                self.logger.warning(f"Start detection deadline reached, skipping {total - index + 1} strategies")
                break

            tried += 1
            self.logger.info(f"Trying strategy {index}/{total}: {strategy.name}")
            try:
                outcome = await with_timeout(
                    strategy.execute(ctx, remaining_ms),
                    remaining_ms,
                    f"Strategy {strategy.name} timed out after {remaining_ms:.0f}ms",
                )
            except Exception as e:
                error = categorize_error(e, TestPhase.START_BUTTON_DETECTION)
                if not error.recoverable:
                    self.logger.error(f"Strategy {strategy.name} aborted the run ({error.category.value}): {error}")
                    raise error
                self.logger.warning(f"Strategy {strategy.name} error ({error.category.value}): {error.message}")
                continue

            if outcome.success:
                self.logger.info(
                    f"Strategy succeeded: {strategy.name} "
                    f"(attempts={outcome.attempts}, {outcome.duration_ms:.0f}ms)"
                )
                return outcome
            self.logger.warning(f"Strategy failed: {strategy.name}: {outcome.error_message}")

        return Outcome(
            success=False,
            strategy_name="none",
            attempts=tried,
            duration_ms=(time.monotonic() - started) * 1000,
            error_message="All strategies failed",
        )
