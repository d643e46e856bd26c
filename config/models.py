"""Pydantic configuration models for the game QA agent."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from exceptions import ConfigFileNotFoundError, ConfigurationError


# Load .env file if present
load_dotenv()


DEFAULT_START_SELECTORS: list[str] = [
    # Exact ids
    "#start-btn",
    "#play-btn",
    "#begin-btn",
    # Attribute substrings, case-insensitive
    '[id*="start" i]',
    '[id*="play" i]',
    '[id*="begin" i]',
    '[class*="start" i]',
    '[class*="play" i]',
    '[class*="begin" i]',
    '[name*="start" i]',
    '[name*="play" i]',
    '[name*="begin" i]',
    '[onclick*="start" i]',
    '[onclick*="play" i]',
    '[onclick*="begin" i]',
    # Visible text
    'button:has-text("start")',
    'button:has-text("play")',
    'button:has-text("begin")',
    'a:has-text("start")',
    'a:has-text("play")',
    'div[role="button"]:has-text("start")',
    'div[role="button"]:has-text("play")',
]

DEFAULT_START_PHRASES: list[str] = [
    "click start button",
    "click play button",
    "press start",
    "click begin game",
]

DEFAULT_START_KEYWORDS: list[str] = ["start", "play", "begin", "go"]

DEFAULT_GAMEPLAY_KEYS: list[str] = [
    "ArrowUp",
    "ArrowDown",
    "ArrowLeft",
    "ArrowRight",
    "Space",
    "Enter",
    "w",
    "a",
    "s",
    "d",
]


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


class AgentConfig(BaseModel):
    """Reasoning service (OpenAI-compatible endpoint) configuration."""

    model: str = Field(
        default="gpt-4o",
        description="Vision-capable model name",
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OpenAI-compatible API (None = OpenAI)",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="API key for the reasoning service",
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Temperature for recommendations",
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens for model response",
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Per-request timeout in seconds",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Ensure base_url doesn't have trailing slash."""
        return v.rstrip("/") if v else v

    @model_validator(mode="before")
    @classmethod
    def load_from_env(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Load values from environment variables if not explicitly set."""
        env_mapping = {
            "base_url": ("GAMEQA_BASE_URL",),
            "api_key": ("GAMEQA_API_KEY", "OPENAI_API_KEY"),
            "model": ("GAMEQA_MODEL",),
        }
        for field_name, env_vars in env_mapping.items():
            if field_name not in data or data[field_name] is None:
                for env_var in env_vars:
                    env_value = os.getenv(env_var)
                    if env_value:
                        data[field_name] = env_value
                        break
        return data

    @property
    def enabled(self) -> bool:
        """Whether a reasoning service can be constructed."""
        return bool(self.api_key)


class BrowserConfig(BaseModel):
    """Browser automation configuration."""

    browser: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use",
    )
    headless: bool = Field(
        default=True,
        description="Run browser in headless mode",
    )
    viewport_width: int = Field(
        default=1280,
        ge=320,
        le=3840,
        description="Browser viewport width",
    )
    viewport_height: int = Field(
        default=720,
        ge=240,
        le=2160,
        description="Browser viewport height",
    )
    slow_mo: int = Field(
        default=0,
        ge=0,
        le=5000,
        description="Slow down browser operations by this many ms",
    )
    navigation_timeout_ms: int = Field(
        default=30000,
        ge=1000,
        description="Timeout for page navigation",
    )
    game_load_timeout_ms: int = Field(
        default=60000,
        ge=1000,
        description="Timeout for the game to reach network idle after navigation",
    )


class StrategyFlags(BaseModel):
    """Enable flags for each start-detection strategy category."""

    enable_dom_strategy: bool = True
    enable_natural_language_strategy: bool = True
    enable_vision_strategy: bool = True
    enable_state_analysis_strategy: bool = False

    @model_validator(mode="before")
    @classmethod
    def load_from_env(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Apply ENABLE_*_STRATEGY environment variables when not set explicitly."""
        for field_name in (
            "enable_dom_strategy",
            "enable_natural_language_strategy",
            "enable_vision_strategy",
            "enable_state_analysis_strategy",
        ):
            if field_name in data and data[field_name] is not None:
                continue
            env_value = os.getenv(field_name.upper())
            if env_value is not None:
                data[field_name] = _env_bool(env_value)
        return data

    def is_enabled(self, kind: str) -> bool:
        """Return the flag for a strategy kind (selector, natural_language, ...)."""
        mapping = {
            "selector": self.enable_dom_strategy,
            "natural_language": self.enable_natural_language_strategy,
            "vision": self.enable_vision_strategy,
            "state_analysis": self.enable_state_analysis_strategy,
        }
        return mapping.get(getattr(kind, "value", kind), False)


class DetectionConfig(BaseModel):
    """Start-control detection tuning."""

    timeout_ms: int = Field(
        default=90000,
        ge=1000,
        description="Shared ceiling for one start-detection resolve call",
    )
    visibility_timeout_ms: int = Field(
        default=1000,
        ge=0,
        description="Bound on each selector visibility check",
    )
    post_click_delay_ms: int = Field(
        default=2000,
        ge=0,
        description="Settle delay after activating the start control",
    )
    min_confidence: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for a vision candidate",
    )
    start_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_START_KEYWORDS))
    selectors: list[str] = Field(default_factory=lambda: list(DEFAULT_START_SELECTORS))
    phrases: list[str] = Field(default_factory=lambda: list(DEFAULT_START_PHRASES))
    start_goal: str = Field(
        default="Find and click the start/play button to begin the game",
        description="Goal given to the state-analysis strategy",
    )

    @field_validator("start_keywords")
    @classmethod
    def lowercase_keywords(cls, v: list[str]) -> list[str]:
        return [k.lower() for k in v if k]


class CostConfig(BaseModel):
    """Estimated USD cost per expensive operation."""

    per_action: float = Field(default=0.02, ge=0.0)
    per_screenshot: float = Field(default=0.02, gt=0.0)
    per_state_check: float = Field(default=0.03, ge=0.0)


class AdaptiveConfig(BaseModel):
    """Adaptive QA loop and scripted session limits."""

    enabled: bool = Field(
        default=False,
        description="Run the adaptive recommendation loop instead of the scripted session",
    )
    max_budget: float = Field(
        default=0.50,
        gt=0.0,
        le=10.0,
        description="Maximum estimated spend in USD per game",
    )
    reserved_for_final_analysis: float = Field(
        default=0.10,
        ge=0.0,
        description="Budget held back for the final playability analysis",
    )
    max_duration_ms: int = Field(
        default=240000,
        ge=1000,
        description="Maximum wall time for gameplay",
    )
    max_actions: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Maximum recommendation cycles",
    )
    action_timeout_ms: int = Field(
        default=10000,
        ge=100,
        description="Timeout for each executed action",
    )
    settle_delay_ms: int = Field(
        default=2000,
        ge=0,
        description="Wait after each action before the next observation",
    )
    check_progression: bool = Field(
        default=True,
        description="Ask the model whether consecutive screenshots differ",
    )
    key_press_delay_ms: int = Field(
        default=500,
        ge=0,
        description="Delay between key presses in the scripted session",
    )
    costs: CostConfig = Field(default_factory=CostConfig)

    @model_validator(mode="before")
    @classmethod
    def load_from_env(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Apply ENABLE_ADAPTIVE_QA and MAX_TEST_DURATION when not set explicitly."""
        if data.get("enabled") is None and os.getenv("ENABLE_ADAPTIVE_QA") is not None:
            data["enabled"] = _env_bool(os.environ["ENABLE_ADAPTIVE_QA"])
        if data.get("max_duration_ms") is None and os.getenv("MAX_TEST_DURATION"):
            data["max_duration_ms"] = int(os.environ["MAX_TEST_DURATION"])
        return data

    @model_validator(mode="after")
    def check_reserve(self) -> "AdaptiveConfig":
        if self.reserved_for_final_analysis >= self.max_budget:
            raise ValueError("reserved_for_final_analysis must be smaller than max_budget")
        return self


class ReportingConfig(BaseModel):
    """Reporting and output configuration."""

    save_screenshots: bool = Field(
        default=True,
        description="Keep screenshots on disk after the run",
    )
    screenshots_folder: Path = Field(
        default=Path("./screenshots"),
        description="Directory for saving screenshots",
    )
    reports_folder: Path = Field(
        default=Path("./reports"),
        description="Directory for saving reports",
    )
    pass_score: int = Field(
        default=50,
        ge=0,
        le=100,
        description="Minimum playability score for a passing game",
    )

    @field_validator("screenshots_folder", "reports_folder", mode="before")
    @classmethod
    def convert_to_path(cls, v: Any) -> Path:
        """Convert string to Path."""
        if isinstance(v, str):
            return Path(v)
        return v


class QAConfig(BaseModel):
    """Root configuration model combining all config sections."""

    agent: AgentConfig = Field(default_factory=AgentConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    strategies: StrategyFlags = Field(default_factory=StrategyFlags)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    adaptive: AdaptiveConfig = Field(default_factory=AdaptiveConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)

    # Execution settings
    parallel_workers: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Number of games tested concurrently",
    )
    verbose: bool = Field(
        default=False,
        description="Enable verbose logging",
    )


def load_config(
    config_path: Optional[Path] = None,
    cli_overrides: Optional[dict[str, Any]] = None,
) -> QAConfig:
    """
    Load configuration from file with CLI overrides.

    Priority (highest to lowest):
    1. CLI arguments
    2. Environment variables
    3. Config file
    4. Defaults
    """
    config_data: dict[str, Any] = {}

    if config_path is None:
        config_path = Path("gameqa.json")
    elif not config_path.exists():
        raise ConfigFileNotFoundError(str(config_path))

    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                if config_path.suffix in {".yaml", ".yml"}:
                    config_data = yaml.safe_load(f) or {}
                else:
                    config_data = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    try:
        config = QAConfig.model_validate(config_data)
        if cli_overrides:
            config_dict = config.model_dump()
            _apply_overrides(config_dict, cli_overrides)
            config = QAConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e.error_count()} error(s)", {"errors": [err["msg"] for err in e.errors()]}) from e

    return config


def _apply_overrides(config_dict: dict[str, Any], overrides: dict[str, Any]) -> None:
    """Apply CLI overrides to config dictionary."""
    override_mapping = {
        "browser": ("browser", "browser"),
        "headless": ("browser", "headless"),
        "parallel": ("parallel_workers", None),
        "verbose": ("verbose", None),
        "adaptive": ("adaptive", "enabled"),
        "budget": ("adaptive", "max_budget"),
        "max_actions": ("adaptive", "max_actions"),
        "duration_ms": ("adaptive", "max_duration_ms"),
        "model": ("agent", "model"),
        "base_url": ("agent", "base_url"),
    }

    for key, value in overrides.items():
        if value is None:
            continue

        if key == "headful":
            config_dict["browser"]["headless"] = not value
            continue

        mapping = override_mapping.get(key)
        if mapping:
            section, field = mapping
            if field is None:
                config_dict[section] = value
            else:
                config_dict[section][field] = value
