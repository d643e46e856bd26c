"""Natural-language strategy: ask the driver to act on plain-English commands."""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from config.models import DEFAULT_START_PHRASES
from exceptions import TestPhase, categorize_error
from qa_types import Outcome, StrategyContext, StrategyKind
from start_detection.base import StartStrategy
from utils import with_timeout


class NaturalLanguageStrategy(StartStrategy):
    kind = StrategyKind.NATURAL_LANGUAGE
    name = "natural_language"

    def __init__(
        self,
        phrases: Sequence[str] = DEFAULT_START_PHRASES,
        post_click_delay_ms: float = 2000,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(post_click_delay_ms, logger)
        self.phrases = tuple(phrases)

    async def _execute(self, ctx: StrategyContext, timeout_ms: float, started: float) -> Outcome:
        driver = ctx.driver
        if not getattr(driver, "supports_instructions", False):
            return self._outcome(
                started,
                success=False,
                attempts=0,
                error_message="Driver does not support natural-language instructions",
            )

        total = len(self.phrases)
        for index, phrase in enumerate(self.phrases, 1):
            self.logger.debug(f"Trying instruction [{index}/{total}]: {phrase}")
            try:
                await with_timeout(
                    driver.perform_instruction(phrase),
                    self._remaining(started, timeout_ms),
                    f"Instruction timed out: {phrase}",
                )
            except Exception as e:
                error = categorize_error(e, TestPhase.START_BUTTON_DETECTION)
                if not error.recoverable:
                    raise error
                self.logger.debug(f"Instruction failed '{phrase}': {error.message}")
                continue

            self.logger.info(f"Instruction succeeded: {phrase}")
            await self._settle()
            return self._outcome(started, success=True, attempts=index)

        return self._outcome(started, success=False, attempts=total, error_message="All phrases failed")
