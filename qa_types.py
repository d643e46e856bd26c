"""Typed records for game QA runs."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

from driver import BrowserDriver
from schemas import Issue, Point


class GameType(str, Enum):
    """How the game renders, detected from the page structure."""

    CANVAS = "canvas"
    IFRAME = "iframe"
    DOM = "dom"
    UNKNOWN = "unknown"


class StrategyKind(str, Enum):
    """Category tag each start-detection strategy carries."""

    SELECTOR = "selector"
    NATURAL_LANGUAGE = "natural_language"
    VISION = "vision"
    STATE_ANALYSIS = "state_analysis"


class CompletionReason(str, Enum):
    BOOTSTRAP_FAILED = "bootstrap_failed"
    MAX_ACTIONS = "max_actions"
    MAX_DURATION = "max_duration"
    BUDGET_LIMIT = "budget_limit"
    LLM_COMPLETE = "llm_complete"


@dataclass
class GameDefinition:
    """One game under test, from a manifest file or a bare URL."""

    id: str
    url: str
    name: Optional[str] = None
    genre: Optional[str] = None
    expected_controls: Optional[str] = None
    keys: List[str] = field(default_factory=list)
    notes: Optional[str] = None

    tags: Set[str] = field(default_factory=set)
    skip: bool = False
    skip_reason: Optional[str] = None
    priority: int = field(default=5)  # 1 = highest, 10 = lowest

    def has_any_tag(self, tags: Set[str]) -> bool:
        """Check if game has any of the specified tags."""
        lower_tags = {t.lower() for t in tags}
        return bool(lower_tags & {t.lower() for t in self.tags})

    def matches_filter(
        self,
        include_tags: Optional[Set[str]] = None,
        exclude_tags: Optional[Set[str]] = None,
    ) -> bool:
        """Check if game matches tag filters."""
        if include_tags and not self.has_any_tag(include_tags):
            return False
        if exclude_tags and self.has_any_tag(exclude_tags):
            return False
        return True

    def metadata(self) -> Dict[str, Any]:
        """Metadata handed to the reasoning service with each request."""
        data: Dict[str, Any] = {"title": self.name or self.id}
        if self.genre:
            data["genre"] = self.genre
        if self.expected_controls:
            data["expected_controls"] = self.expected_controls
        if self.keys:
            data["keys"] = list(self.keys)
        return data


@dataclass
class Outcome:
    """Uniform result of one strategy or orchestrator attempt."""

    success: bool
    strategy_name: str
    attempts: int = 0
    duration_ms: float = 0.0
    coordinates: Optional[Point] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "strategy": self.strategy_name,
            "attempts": self.attempts,
            "duration_ms": round(self.duration_ms, 1),
        }
        if self.coordinates is not None:
            data["coordinates"] = {"x": self.coordinates.x, "y": self.coordinates.y}
        if self.error_message:
            data["error"] = self.error_message
        return data


@dataclass
class StrategyContext:
    """Per-request bindings shared by every strategy in one resolve call."""

    driver: BrowserDriver
    goal: str = "Find and click the start/play button to begin the game"
    screenshot_path: Optional[Path] = None
    html: Optional[str] = None
    prior_actions: List["ActionRecord"] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GameState:
    """HTML and screenshot captured at one point of a run."""

    html: str
    screenshot_path: Path
    stage: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class ActionRecord:
    """One action the loop attempted, fed back as history to the model."""

    action: str
    target: Union[Point, str, float, int, None]
    reasoning: str
    success: bool
    state_progressed: Optional[bool] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        target: Any = self.target
        if isinstance(target, Point):
            target = {"x": target.x, "y": target.y}
        return {
            "action": self.action,
            "target": target,
            "reasoning": self.reasoning,
            "success": self.success,
            "state_progressed": self.state_progressed,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class LoopResult:
    """Outcome of one adaptive QA loop."""

    success: bool
    completion_reason: CompletionReason
    bootstrap: Outcome
    actions: List[ActionRecord] = field(default_factory=list)
    screenshots: List[Path] = field(default_factory=list)
    state_checks: int = 0
    estimated_cost: float = 0.0

    @property
    def action_count(self) -> int:
        return len(self.actions)


@dataclass
class GameTestResult:
    """Outcome of testing one game."""

    __test__ = False

    game: GameDefinition
    status: str  # pass | fail | error
    playability_score: int
    started_at: datetime
    finished_at: datetime
    issues: List[Issue] = field(default_factory=list)
    screenshots: List[Path] = field(default_factory=list)
    start_outcome: Optional[Outcome] = None
    loop_result: Optional[LoopResult] = None
    game_type: GameType = GameType.UNKNOWN
    console_errors: List[str] = field(default_factory=list)
    estimated_cost: float = 0.0
    summary: str = ""
    browser_type: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == "pass"

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.finished_at - self.started_at).total_seconds())


@dataclass
class SuiteResult:
    """Aggregated results for a suite run."""

    results: List[GameTestResult]
    started_at: datetime
    finished_at: datetime

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.status == "pass")

    @property
    def errored(self) -> int:
        return sum(1 for r in self.results if r.status == "error")

    @property
    def failed(self) -> int:
        return self.total - self.passed - self.errored

    @property
    def pass_rate(self) -> float:
        return (self.passed / self.total * 100) if self.total else 0.0

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.finished_at - self.started_at).total_seconds())

    @property
    def failed_games(self) -> List[GameTestResult]:
        return [r for r in self.results if r.status != "pass"]
