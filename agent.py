"""Game QA agent: loads one game, starts it, plays it and scores playability."""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from adaptive_loop import AdaptiveQALoop
from browser import SimpleBrowser
from budget import distribute_screenshots, max_screenshots
from config.models import DEFAULT_GAMEPLAY_KEYS, QAConfig
from exceptions import TestPhase, categorize_error
from game_detector import GameDetector
from interactor import GameInteractor, RecommendationExecutor
from qa_types import GameDefinition, GameTestResult, LoopResult, Outcome, StrategyContext
from reasoning import ReasoningService
from schemas import Issue, PlayabilityReport
from screenshots import ScreenshotStore
from start_detection import StrategyOrchestrator, build_start_strategies

MAX_CONSOLE_ISSUES = 10


class GameQAAgent:
    """Runs the full QA pass for one game at a time.

    Each call to ``run_game`` gets its own browser, screenshot store and, in
    adaptive mode, its own budget, so one agent may be reused sequentially.
    """

    def __init__(
        self,
        config: QAConfig,
        reasoning: Optional[ReasoningService] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger("game_qa_agent")
        if reasoning is None and config.agent.enabled:
            reasoning = ReasoningService(config.agent, logger=self.logger.getChild("reasoning"))
        self.reasoning = reasoning
        if self.reasoning is None:
            self.logger.warning("No reasoning service configured; vision and model-driven steps are disabled")

    def _new_browser(self) -> SimpleBrowser:
        browser_cfg = self.config.browser
        return SimpleBrowser(
            browser_type=browser_cfg.browser,
            headless=browser_cfg.headless,
            viewport_width=browser_cfg.viewport_width,
            viewport_height=browser_cfg.viewport_height,
            slow_mo=browser_cfg.slow_mo,
            instruction_handler=self.reasoning.perform_instruction if self.reasoning else None,
            logger=self.logger.getChild("browser"),
        )

    def _orchestrator(self, store: ScreenshotStore, executor: RecommendationExecutor) -> StrategyOrchestrator:
        detection = self.config.detection
        strategies = build_start_strategies(
            detection,
            store,
            reasoning=self.reasoning,
            executor=executor,
            logger=self.logger.getChild("start_detection"),
        )
        return StrategyOrchestrator(
            strategies,
            self.config.strategies,
            timeout_ms=detection.timeout_ms,
            logger=self.logger.getChild("start_detection"),
        )

    async def run_game(self, game: GameDefinition, run_id: Optional[str] = None) -> GameTestResult:
        """Test one game and return its scored result."""
        run_id = run_id or f"{game.id}-{datetime.utcnow().strftime('%Y%m%d-%H%M%S')}"
        started_at = datetime.utcnow()
        browser = self._new_browser()
        store = ScreenshotStore(
            self.config.reporting.screenshots_folder,
            run_id,
            logger=self.logger.getChild("screenshots"),
        )
        result = GameTestResult(
            game=game,
            status="error",
            playability_score=0,
            started_at=started_at,
            finished_at=started_at,
            browser_type=self.config.browser.browser,
        )

        phase = TestPhase.INITIALIZATION
        try:
            self.logger.info(f"=== Testing {game.id}: {game.url} ===")
            await browser.start()

            phase = TestPhase.NAVIGATION
            await browser.goto(game.url, timeout=self.config.browser.navigation_timeout_ms)
            if not await browser.wait_for_load_state("networkidle", timeout=self.config.browser.game_load_timeout_ms):
                self.logger.warning("Network did not become idle; continuing")

            phase = TestPhase.GAME_DETECTION
            result.game_type = await GameDetector(logger=self.logger.getChild("detector")).detect_type(browser)

            if self.config.adaptive.enabled and self.reasoning is not None:
                phase = TestPhase.ADAPTIVE_QA_LOOP
                loop_result = await self._run_adaptive(browser, store, game)
                result.loop_result = loop_result
                result.start_outcome = loop_result.bootstrap
                result.screenshots = list(loop_result.screenshots)
                result.estimated_cost = loop_result.estimated_cost
            else:
                if self.config.adaptive.enabled:
                    self.logger.warning("Adaptive mode needs a reasoning service; running the scripted session")
                phase = TestPhase.START_BUTTON_DETECTION
                result.start_outcome, result.screenshots = await self._run_scripted(browser, store, game)

            started = bool(result.start_outcome and result.start_outcome.success)
            if not started:
                reason = result.start_outcome.error_message if result.start_outcome else "not attempted"
                result.issues.append(
                    Issue(severity="critical", description=f"Could not start the game: {reason}", source="detection")
                )

            phase = TestPhase.VISION_ANALYSIS
            result.console_errors = browser.get_console_errors()
            report = await self._final_analysis(result.screenshots, game, result.console_errors, started)
            result.playability_score = report.playability_score
            result.issues.extend(report.issues)
            result.summary = report.summary
            result.issues.extend(self._console_issues(result.console_errors))
            result.status = "pass" if report.playability_score >= self.config.reporting.pass_score else "fail"

        except Exception as e:
            error = categorize_error(e, phase)
            self.logger.error(f"Game {game.id} failed during {phase.value} ({error.category.value}): {error}")
            result.status = "error"
            result.playability_score = 0
            result.summary = f"Test aborted during {phase.value}: {error.message}"
            result.issues.append(Issue(severity="critical", description=error.message, source="runtime"))
            if not result.screenshots:
                result.screenshots = list(store.saved)
        finally:
            try:
                await browser.close()
            except Exception as e:
                self.logger.warning(f"Browser close failed: {e}")
            if not self.config.reporting.save_screenshots:
                store.cleanup()
                result.screenshots = []

        result.finished_at = datetime.utcnow()
        self.logger.info(
            f"=== {game.id}: {result.status.upper()} "
            f"(score {result.playability_score}, {len(result.issues)} issues) ==="
        )
        return result

    async def _run_adaptive(self, browser: SimpleBrowser, store: ScreenshotStore, game: GameDefinition) -> LoopResult:
        adaptive = self.config.adaptive
        executor = RecommendationExecutor(logger=self.logger.getChild("executor"))
        interactor = GameInteractor(
            store,
            key_press_delay_ms=adaptive.key_press_delay_ms,
            action_timeout_ms=adaptive.action_timeout_ms,
            logger=self.logger.getChild("interactor"),
        )
        loop = AdaptiveQALoop(
            self._orchestrator(store, executor),
            self.reasoning,
            interactor,
            adaptive,
            executor=executor,
            metadata=game.metadata(),
            start_goal=self.config.detection.start_goal,
            logger=self.logger.getChild("adaptive_loop"),
        )
        loop_result = await loop.run(browser)
        # Final analysis is priced at its reserve.
        loop_result.estimated_cost += adaptive.reserved_for_final_analysis if self.reasoning else 0.0
        return loop_result

    async def _run_scripted(
        self,
        browser: SimpleBrowser,
        store: ScreenshotStore,
        game: GameDefinition,
    ) -> tuple[Outcome, List[Path]]:
        adaptive = self.config.adaptive
        executor = RecommendationExecutor(logger=self.logger.getChild("executor"))
        interactor = GameInteractor(
            store,
            key_press_delay_ms=adaptive.key_press_delay_ms,
            action_timeout_ms=adaptive.action_timeout_ms,
            logger=self.logger.getChild("interactor"),
        )

        state = await interactor.capture_state(browser, "pre_start")
        screenshots = [state.screenshot_path]
        ctx = StrategyContext(
            driver=browser,
            goal=self.config.detection.start_goal,
            screenshot_path=state.screenshot_path,
            html=state.html,
            metadata=game.metadata(),
        )
        outcome = await self._orchestrator(store, executor).resolve(ctx)
        if not outcome.success:
            return outcome, screenshots

        self.logger.info("=== Scripted gameplay session ===")
        count = max_screenshots(
            adaptive.max_budget,
            adaptive.reserved_for_final_analysis,
            adaptive.costs.per_screenshot,
        )
        offsets = distribute_screenshots(adaptive.max_duration_ms, count)
        keys = game.keys or DEFAULT_GAMEPLAY_KEYS
        screenshots.extend(
            await interactor.run_scripted_session(browser, keys, adaptive.max_duration_ms, offsets)
        )
        return outcome, screenshots

    async def _final_analysis(
        self,
        screenshots: List[Path],
        game: GameDefinition,
        console_errors: List[str],
        started: bool,
    ) -> PlayabilityReport:
        """Score the run from its screenshots, or fall back when no model is available."""
        fallback = PlayabilityReport(
            playability_score=50 if started else 0,
            summary="Scored without vision analysis",
        )
        if self.reasoning is None or not screenshots:
            return fallback

        self.logger.info(f"=== Playability analysis ({len(screenshots)} screenshots) ===")
        try:
            return await self.reasoning.evaluate_playability(screenshots, game.metadata(), console_errors)
        except Exception as e:
            error = categorize_error(e, TestPhase.VISION_ANALYSIS)
            if not error.recoverable:
                raise error
            self.logger.warning(f"Playability analysis failed, using fallback score: {error.message}")
            fallback.issues.append(
                Issue(severity="minor", description=f"Vision analysis unavailable: {error.message}", source="runtime")
            )
            return fallback

    @staticmethod
    def _console_issues(console_errors: List[str]) -> List[Issue]:
        unique = list(dict.fromkeys(console_errors))
        return [
            Issue(severity="major", description=f"Console error: {text[:300]}", source="console")
            for text in unique[:MAX_CONSOLE_ISSUES]
        ]

