"""Unit tests for start-strategy orchestration."""
from __future__ import annotations

import asyncio

import pytest

from config import DetectionConfig, StrategyFlags
from exceptions import ActionTimeoutError, BrowserError, ElementNotFoundError
from qa_types import Outcome, StrategyContext, StrategyKind
from start_detection import StartStrategy, StrategyOrchestrator, build_start_strategies
from tests.fakes import FakeDriver


class ScriptedStrategy(StartStrategy):
    """Returns a fixed outcome, raises, or hangs."""

    def __init__(self, name, kind=StrategyKind.SELECTOR, success=False, error=None, delay_s=0.0, available=True):
        self.name = name
        self.kind = kind
        super().__init__(post_click_delay_ms=0)
        self.success = success
        self.error = error
        self.delay_s = delay_s
        self.available = available
        self.calls = 0

    def is_available(self) -> bool:
        return self.available

    async def _execute(self, ctx, timeout_ms, started):
        self.calls += 1
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self._outcome(started, success=self.success, attempts=1, error_message=None if self.success else "nope")


class RaisingStrategy(ScriptedStrategy):
    """Raises straight out of execute, bypassing the base-class error handling."""

    async def execute(self, ctx, timeout_ms):
        self.calls += 1
        raise self.error


def all_enabled() -> StrategyFlags:
    return StrategyFlags(
        enable_dom_strategy=True,
        enable_natural_language_strategy=True,
        enable_vision_strategy=True,
        enable_state_analysis_strategy=True,
    )


class TestStrategyOrchestrator:
    @pytest.mark.asyncio
    async def test_first_success_wins(self):
        first = ScriptedStrategy("first")
        second = ScriptedStrategy("second", kind=StrategyKind.VISION, success=True)
        third = ScriptedStrategy("third", kind=StrategyKind.VISION, success=True)
        orchestrator = StrategyOrchestrator([first, second, third], all_enabled())

        outcome = await orchestrator.resolve(StrategyContext(driver=FakeDriver()))

        assert outcome.success is True
        assert outcome.strategy_name == "second"
        assert first.calls == 1
        assert second.calls == 1
        assert third.calls == 0

    @pytest.mark.asyncio
    async def test_all_fail(self):
        strategies = [ScriptedStrategy("a"), ScriptedStrategy("b")]
        outcome = await StrategyOrchestrator(strategies, all_enabled()).resolve(StrategyContext(driver=FakeDriver()))

        assert outcome == Outcome(
            success=False,
            strategy_name="none",
            attempts=2,
            duration_ms=outcome.duration_ms,
            error_message="All strategies failed",
        )

    def test_filters_disabled_and_unavailable(self):
        strategies = [
            ScriptedStrategy("dom", kind=StrategyKind.SELECTOR),
            ScriptedStrategy("vision", kind=StrategyKind.VISION, available=False),
            ScriptedStrategy("state", kind=StrategyKind.STATE_ANALYSIS),
        ]
        orchestrator = StrategyOrchestrator(strategies, StrategyFlags())

        assert orchestrator.strategy_names == ["dom"]

    @pytest.mark.asyncio
    async def test_empty_orchestrator_fails_with_zero_attempts(self):
        outcome = await StrategyOrchestrator([], all_enabled()).resolve(StrategyContext(driver=FakeDriver()))
        assert outcome.success is False
        assert outcome.attempts == 0

    @pytest.mark.asyncio
    async def test_shared_deadline_cuts_slow_strategy(self):
        slow = ScriptedStrategy("slow", delay_s=5)
        slower = ScriptedStrategy("slower", success=True, delay_s=5)
        orchestrator = StrategyOrchestrator([slow, slower], all_enabled(), timeout_ms=50)

        outcome = await orchestrator.resolve(StrategyContext(driver=FakeDriver()))

        assert outcome.success is False
        assert outcome.strategy_name == "none"
        assert outcome.duration_ms < 1000

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [ActionTimeoutError("Strategy timed out", timeout_ms=10), ElementNotFoundError("no start button")],
    )
    async def test_recoverable_error_continues_to_next_strategy(self, error):
        flaky = RaisingStrategy("flaky", error=error)
        ok = ScriptedStrategy("ok", kind=StrategyKind.VISION, success=True)

        outcome = await StrategyOrchestrator([flaky, ok], all_enabled()).resolve(StrategyContext(driver=FakeDriver()))

        assert flaky.calls == 1
        assert ok.calls == 1
        assert outcome.success is True
        assert outcome.strategy_name == "ok"

    @pytest.mark.asyncio
    async def test_recoverable_errors_everywhere_yield_failure(self):
        strategies = [
            RaisingStrategy("a", error=ActionTimeoutError("slow", timeout_ms=10)),
            RaisingStrategy("b", error=ElementNotFoundError("gone")),
        ]

        outcome = await StrategyOrchestrator(strategies, all_enabled()).resolve(StrategyContext(driver=FakeDriver()))

        assert outcome.success is False
        assert outcome.strategy_name == "none"
        assert outcome.attempts == 2

    @pytest.mark.asyncio
    async def test_non_recoverable_error_aborts(self):
        broken = ScriptedStrategy("broken", error=BrowserError("Target closed"))
        after = ScriptedStrategy("after", success=True)

        with pytest.raises(BrowserError):
            await StrategyOrchestrator([broken, after], all_enabled()).resolve(StrategyContext(driver=FakeDriver()))
        assert after.calls == 0


class TestBuildStartStrategies:
    def test_canonical_order(self, store, mock_reasoning):
        strategies = build_start_strategies(DetectionConfig(post_click_delay_ms=0), store, reasoning=mock_reasoning)

        assert [s.kind for s in strategies] == [
            StrategyKind.SELECTOR,
            StrategyKind.NATURAL_LANGUAGE,
            StrategyKind.VISION,
            StrategyKind.STATE_ANALYSIS,
        ]
        assert all(s.is_available() for s in strategies)

    def test_model_strategies_unavailable_without_reasoning(self, store):
        strategies = build_start_strategies(DetectionConfig(), store)
        orchestrator = StrategyOrchestrator(strategies, all_enabled())

        assert orchestrator.strategy_names == ["dom", "natural_language"]
