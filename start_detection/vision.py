"""Vision strategy: ask the model for clickable elements and click the start one."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from config.models import DEFAULT_START_KEYWORDS
from qa_types import Outcome, StrategyContext, StrategyKind
from schemas import Point
from screenshots import ScreenshotStore
from start_detection.base import StartStrategy
from start_detection.candidates import select_candidate
from utils import with_timeout


class VisionStrategy(StartStrategy):
    kind = StrategyKind.VISION
    name = "vision"

    def __init__(
        self,
        reasoning,
        store: ScreenshotStore,
        keywords: Sequence[str] = DEFAULT_START_KEYWORDS,
        min_confidence: float = 0.7,
        post_click_delay_ms: float = 2000,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(post_click_delay_ms, logger)
        self.reasoning = reasoning
        self.store = store
        self.keywords = tuple(keywords)
        self.min_confidence = min_confidence

    def is_available(self) -> bool:
        return self.reasoning is not None

    async def _execute(self, ctx: StrategyContext, timeout_ms: float, started: float) -> Outcome:
        if ctx.screenshot_path is not None:
            screenshot_path = ctx.screenshot_path
            self.logger.debug(f"Reusing screenshot {screenshot_path}")
        else:
            screenshot_path = await self.store.capture(ctx.driver, "pre_start")

        candidates = await with_timeout(
            self.reasoning.detect_candidates(screenshot_path),
            self._remaining(started, timeout_ms),
            "Vision candidate detection timed out",
        )
        if not candidates:
            return self._outcome(started, success=False, attempts=1, error_message="No clickable elements found")

        best = select_candidate(candidates, self.keywords, self.min_confidence)
        if best is None:
            return self._outcome(
                started,
                success=False,
                attempts=1,
                error_message=(
                    f"No start/play candidates above confidence {self.min_confidence:.2f} "
                    f"(found {len(candidates)} clickable elements)"
                ),
            )

        x, y = best.point.rounded()
        self.logger.info(f"Vision picked '{best.label}' at ({x}, {y}), confidence {best.confidence:.2f}")
        await with_timeout(
            ctx.driver.click_at(x, y),
            self._remaining(started, timeout_ms),
            f"Vision click at ({x}, {y}) timed out",
        )
        await self._settle()
        return self._outcome(started, success=True, attempts=1, coordinates=Point(x=x, y=y))
