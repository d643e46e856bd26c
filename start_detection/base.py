"""Start-control detection strategy contract."""
from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

from exceptions import TestPhase, categorize_error
from qa_types import Outcome, StrategyContext, StrategyKind


class StartStrategy(ABC):
    """One way of finding and activating a game's start control.

    ``is_available`` must be free of side effects; the orchestrator calls it
    once at construction. ``execute`` may click or type on the page. Errors
    are categorized inside ``execute``: recoverable ones come back as a failed
    Outcome, anything else is raised as the categorized ``GameQAError``.
    """

    kind: StrategyKind
    name: str

    def __init__(
        self,
        post_click_delay_ms: float = 2000,
        logger: Optional[logging.Logger] = None,
    ):
        self.post_click_delay_ms = post_click_delay_ms
        self.logger = logger or logging.getLogger(f"start_detection.{self.name}")

    def is_available(self) -> bool:
        return True

    async def execute(self, ctx: StrategyContext, timeout_ms: float) -> Outcome:
        started = time.monotonic()
        try:
            return await self._execute(ctx, timeout_ms, started)
        except Exception as e:
            error = categorize_error(e, TestPhase.START_BUTTON_DETECTION)
            if not error.recoverable:
                raise error
            self.logger.debug(f"{self.name} strategy error ({error.category.value}): {error.message}")
            return self._outcome(started, success=False, attempts=1, error_message=error.message)

    @abstractmethod
    async def _execute(self, ctx: StrategyContext, timeout_ms: float, started: float) -> Outcome:
        ...

    def _outcome(self, started: float, success: bool, attempts: int, **kwargs) -> Outcome:
        return Outcome(
            success=success,
            strategy_name=self.name,
            attempts=attempts,
            duration_ms=(time.monotonic() - started) * 1000,
            **kwargs,
        )

    @staticmethod
    def _remaining(started: float, timeout_ms: float) -> float:
        return timeout_ms - (time.monotonic() - started) * 1000

    async def _settle(self) -> None:
        """Give the game time to react after the start control was activated."""
        if self.post_click_delay_ms <= 0:
            return
        self.logger.debug(f"Waiting {self.post_click_delay_ms:.0f}ms after click")
        try:
            await asyncio.sleep(self.post_click_delay_ms / 1000)
        except Exception as e:
            self.logger.debug(f"Post-click delay interrupted: {e}")
