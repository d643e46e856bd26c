"""Structural selector strategy: try known start-button selectors in order."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from config.models import DEFAULT_START_SELECTORS
from driver import box_center
from exceptions import TestPhase, categorize_error
from qa_types import Outcome, StrategyContext, StrategyKind
from schemas import Point
from start_detection.base import StartStrategy
from utils import with_timeout


class SelectorStrategy(StartStrategy):
    """Clicks the first visible element among an ordered list of selectors."""

    kind = StrategyKind.SELECTOR
    name = "dom"

    def __init__(
        self,
        selectors: Sequence[str] = DEFAULT_START_SELECTORS,
        visibility_timeout_ms: float = 1000,
        post_click_delay_ms: float = 2000,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(post_click_delay_ms, logger)
        self.selectors = tuple(selectors)
        self.visibility_timeout_ms = visibility_timeout_ms

    async def _execute(self, ctx: StrategyContext, timeout_ms: float, started: float) -> Outcome:
        driver = ctx.driver
        total = len(self.selectors)
        self.logger.debug(f"Selector strategy starting: {total} selectors, timeout {timeout_ms:.0f}ms")

        for index, selector in enumerate(self.selectors, 1):
            try:
                element = await driver.locate(selector)
                visible = element is not None and await element.is_visible(self.visibility_timeout_ms)
            except Exception as e:
                error = categorize_error(e, TestPhase.START_BUTTON_DETECTION)
                if not error.recoverable:
                    raise error
                self.logger.debug(f"Selector lookup failed {selector}: {error.message}")
                continue

            if not visible:
                self.logger.debug(f"Selector [{index}/{total}] not visible: {selector}")
                continue

            self.logger.info(f"Selector [{index}/{total}] visible, clicking: {selector}")
            try:
                await with_timeout(
                    element.click(),
                    self._remaining(started, timeout_ms),
                    f"Selector click timed out: {selector}",
                )
            except Exception as e:
                error = categorize_error(e, TestPhase.START_BUTTON_DETECTION)
                if not error.recoverable:
                    raise error
                self.logger.warning(f"Click failed for {selector}: {error.message}")
                continue

            coordinates = await self._center_of(element, selector)
            await self._settle()
            return self._outcome(started, success=True, attempts=index, coordinates=coordinates)

        return self._outcome(started, success=False, attempts=total, error_message="No selectors matched")

    async def _center_of(self, element, selector: str) -> Optional[Point]:
        try:
            box = await element.bounding_box()
        except Exception as e:
            self.logger.debug(f"Could not read bounding box for {selector}: {e}")
            return None
        if box is None:
            return None
        x, y = box_center(box)
        return Point(x=round(max(0.0, x)), y=round(max(0.0, y)))
