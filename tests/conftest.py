"""Pytest fixtures for game QA tests."""
from __future__ import annotations

import tempfile
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from qa_types import (
    ActionRecord,
    CompletionReason,
    GameDefinition,
    GameTestResult,
    GameType,
    LoopResult,
    Outcome,
)
from schemas import Issue, Point
from screenshots import ScreenshotStore
from tests.fakes import FakeDriver, make_png


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def store(temp_dir: Path) -> ScreenshotStore:
    return ScreenshotStore(temp_dir / "screenshots", "run-1")


@pytest.fixture
def mock_reasoning() -> MagicMock:
    """Reasoning service double; every model call is an AsyncMock."""
    reasoning = MagicMock()
    reasoning.detect_candidates = AsyncMock(return_value=[])
    reasoning.recommend_action = AsyncMock()
    reasoning.has_state_progressed = AsyncMock(return_value=True)
    reasoning.evaluate_playability = AsyncMock()
    reasoning.perform_instruction = AsyncMock()
    return reasoning


@pytest.fixture
def sample_game() -> GameDefinition:
    """Create a sample game definition for testing."""
    return GameDefinition(
        id="pong",
        url="https://games.example.com/pong/",
        name="Pong",
        genre="arcade",
        expected_controls="Arrow keys move the paddle",
        keys=["ArrowUp", "ArrowDown"],
        tags={"arcade", "smoke"},
        priority=1,
    )


@pytest.fixture
def sample_game_result(sample_game: GameDefinition) -> GameTestResult:
    """Create a sample adaptive-mode result for testing."""
    bootstrap = Outcome(
        success=True,
        strategy_name="dom",
        attempts=2,
        duration_ms=1250.4,
        coordinates=Point(x=640, y=360),
    )
    loop = LoopResult(
        success=True,
        completion_reason=CompletionReason.MAX_ACTIONS,
        bootstrap=bootstrap,
        actions=[
            ActionRecord(
                action="keypress",
                target="ArrowUp",
                reasoning="Move paddle up",
                success=True,
                state_progressed=True,
                timestamp=datetime(2024, 1, 1, 10, 0, 5),
            ),
            ActionRecord(
                action="click",
                target=Point(x=100, y=200),
                reasoning="Press pause",
                success=False,
                timestamp=datetime(2024, 1, 1, 10, 0, 9),
            ),
        ],
        screenshots=[Path("screenshots/pong/01-pre_start.png")],
        state_checks=1,
        estimated_cost=0.17,
    )
    return GameTestResult(
        game=sample_game,
        status="pass",
        playability_score=82,
        started_at=datetime(2024, 1, 1, 10, 0, 0),
        finished_at=datetime(2024, 1, 1, 10, 0, 30),
        issues=[Issue(severity="minor", description="Score text flickers", source="vision")],
        screenshots=[Path("screenshots/pong/01-pre_start.png")],
        start_outcome=bootstrap,
        loop_result=loop,
        game_type=GameType.CANVAS,
        console_errors=["Uncaught TypeError: x is undefined"],
        estimated_cost=0.27,
        summary="Paddle responds to input",
        browser_type="chromium",
    )
