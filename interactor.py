"""Shared action execution and game interaction helpers."""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from pathlib import Path
from typing import Optional, Sequence, Union

from driver import BrowserDriver
from exceptions import TestPhase, categorize_error
from qa_types import GameState, Outcome
from schemas import AlternativeAction, Point, Recommendation
from screenshots import ScreenshotStore
from utils import elapsed_ms, now_ms, with_timeout

Step = Union[Recommendation, AlternativeAction]


def _wait_ms(target: object) -> Optional[float]:
    if isinstance(target, bool):
        return None
    if isinstance(target, (int, float)):
        return float(target)
    if isinstance(target, str):
        try:
            return float(target)
        except ValueError:
            return None
    return None


class RecommendationExecutor:
    """Executes a Recommendation, falling back through its alternatives.

    Used both by the state-analysis start strategy and by every cycle of the
    adaptive loop so the two never disagree on what an action means.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("executor")

    async def execute(
        self,
        driver: BrowserDriver,
        recommendation: Recommendation,
        timeout_ms: float,
        strategy_name: str = "recommendation",
        phase: TestPhase = TestPhase.ADAPTIVE_QA_LOOP,
    ) -> Outcome:
        started = time.monotonic()
        steps: list[Step] = [recommendation, *recommendation.alternatives]

        def outcome(success: bool, attempts: int, **kwargs) -> Outcome:
            return Outcome(
                success=success,
                strategy_name=strategy_name,
                attempts=attempts,
                duration_ms=(time.monotonic() - started) * 1000,
                **kwargs,
            )

        for attempt, step in enumerate(steps, 1):
            label = "primary" if attempt == 1 else f"alternative {attempt - 1}"
            try:
                if step.action == "complete":
                    return outcome(True, attempt)

                if step.action == "wait":
                    wait_ms = _wait_ms(step.target)
                    if wait_ms is not None and wait_ms >= 0:
                        await asyncio.sleep(min(wait_ms, timeout_ms) / 1000)
                        return outcome(True, attempt)

                elif step.action == "click" and isinstance(step.target, Point):
                    x, y = step.target.rounded()
                    await with_timeout(
                        driver.click_at(x, y),
                        timeout_ms,
                        f"Click at ({x}, {y}) timed out after {timeout_ms:.0f}ms",
                    )
                    self.logger.info(f"Clicked ({x}, {y}) [{label}]")
                    return outcome(True, attempt, coordinates=Point(x=x, y=y))

                elif step.action == "keypress" and isinstance(step.target, str) and step.target:
                    await with_timeout(
                        driver.press_key(step.target),
                        timeout_ms,
                        f"Key press {step.target} timed out after {timeout_ms:.0f}ms",
                    )
                    self.logger.info(f"Pressed {step.target} [{label}]")
                    return outcome(True, attempt)

                self.logger.debug(f"Skipping non-actionable {label}: {step.action} {step.target!r}")
            except Exception as e:
                error = categorize_error(e, phase)
                if not error.recoverable:
                    raise error
                self.logger.warning(f"{label.capitalize()} {step.action} failed: {error.message}")

        return outcome(False, len(steps), error_message="No recommended action succeeded")


class GameInteractor:
    """Captures game state and drives the scripted keyboard session."""

    def __init__(
        self,
        store: ScreenshotStore,
        key_press_delay_ms: float = 500,
        action_timeout_ms: float = 10000,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.key_press_delay_ms = key_press_delay_ms
        self.action_timeout_ms = action_timeout_ms
        self.logger = logger or logging.getLogger("interactor")

    async def capture_state(self, driver: BrowserDriver, stage: str) -> GameState:
        """Page HTML plus a saved screenshot of the current frame."""
        html = await with_timeout(
            driver.get_html(),
            self.action_timeout_ms,
            "Reading page HTML timed out",
        )
        path = await self.store.capture(driver, stage)
        return GameState(html=html, screenshot_path=path, stage=stage)

    async def run_scripted_session(
        self,
        driver: BrowserDriver,
        keys: Sequence[str],
        duration_ms: float,
        capture_offsets: Sequence[int],
    ) -> list[Path]:
        """Cycle through ``keys`` for ``duration_ms``, capturing at each offset."""
        if not keys:
            raise ValueError("keys must not be empty")

        started = now_ms()
        pending = deque(sorted(capture_offsets))
        captured: list[Path] = []
        presses = 0

        while True:
            elapsed = elapsed_ms(started)
            while pending and pending[0] <= elapsed:
                offset = pending.popleft()
                captured.append(await self.store.capture(driver, f"play-{offset}ms"))
            if elapsed >= duration_ms:
                break

            key = keys[presses % len(keys)]
            presses += 1
            try:
                await with_timeout(driver.press_key(key), self.action_timeout_ms)
            except Exception as e:
                error = categorize_error(e, TestPhase.GAMEPLAY_SIMULATION)
                if not error.recoverable:
                    raise error
                self.logger.warning(f"Key press {key} failed, continuing: {error.message}")

            next_stop = min(pending[0] if pending else duration_ms, duration_ms)
            remaining = next_stop - elapsed_ms(started)
            await asyncio.sleep(max(0.0, min(self.key_press_delay_ms, remaining)) / 1000)

        for offset in pending:
            captured.append(await self.store.capture(driver, f"play-{offset}ms"))

        self.logger.info(f"Scripted session done: {presses} key presses, {len(captured)} screenshots")
        return captured
