"""Unit tests for config module."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from config import (
    AdaptiveConfig,
    AgentConfig,
    BrowserConfig,
    DetectionConfig,
    QAConfig,
    ReportingConfig,
    StrategyFlags,
    load_config,
)
from config.models import DEFAULT_START_KEYWORDS, DEFAULT_START_SELECTORS
from exceptions import ConfigFileNotFoundError, ConfigurationError
from qa_types import StrategyKind


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "GAMEQA_BASE_URL",
        "GAMEQA_API_KEY",
        "OPENAI_API_KEY",
        "GAMEQA_MODEL",
        "ENABLE_DOM_STRATEGY",
        "ENABLE_NATURAL_LANGUAGE_STRATEGY",
        "ENABLE_VISION_STRATEGY",
        "ENABLE_STATE_ANALYSIS_STRATEGY",
        "ENABLE_ADAPTIVE_QA",
        "MAX_TEST_DURATION",
    ):
        monkeypatch.delenv(name, raising=False)


class TestAgentConfig:
    """Tests for AgentConfig model."""

    def test_default_values(self):
        config = AgentConfig()
        assert config.model == "gpt-4o"
        assert config.base_url is None
        assert config.temperature == 0.3
        assert config.enabled is False

    def test_base_url_trailing_slash_stripped(self):
        config = AgentConfig(base_url="http://localhost:1234/v1/")
        assert config.base_url == "http://localhost:1234/v1"

    def test_temperature_validation(self):
        with pytest.raises(ValueError):
            AgentConfig(temperature=-0.1)
        with pytest.raises(ValueError):
            AgentConfig(temperature=2.5)

    def test_env_var_loading(self, monkeypatch):
        monkeypatch.setenv("GAMEQA_BASE_URL", "http://env-url:8080/v1")
        monkeypatch.setenv("OPENAI_API_KEY", "env-api-key")

        config = AgentConfig()
        assert config.base_url == "http://env-url:8080/v1"
        assert config.api_key == "env-api-key"
        assert config.enabled is True

    def test_explicit_value_beats_env(self, monkeypatch):
        monkeypatch.setenv("GAMEQA_MODEL", "env-model")
        assert AgentConfig(model="explicit").model == "explicit"


class TestBrowserConfig:
    """Tests for BrowserConfig model."""

    def test_default_values(self):
        config = BrowserConfig()
        assert config.browser == "chromium"
        assert config.headless is True
        assert config.viewport_width == 1280
        assert config.viewport_height == 720

    def test_invalid_browser_rejected(self):
        with pytest.raises(ValueError):
            BrowserConfig(browser="invalid")

    def test_viewport_validation(self):
        with pytest.raises(ValueError):
            BrowserConfig(viewport_width=100)


class TestStrategyFlags:
    """Tests for start-strategy enable flags."""

    def test_defaults(self):
        flags = StrategyFlags()
        assert flags.is_enabled(StrategyKind.SELECTOR)
        assert flags.is_enabled(StrategyKind.NATURAL_LANGUAGE)
        assert flags.is_enabled(StrategyKind.VISION)
        assert not flags.is_enabled(StrategyKind.STATE_ANALYSIS)

    def test_accepts_plain_strings(self):
        flags = StrategyFlags(enable_vision_strategy=False)
        assert flags.is_enabled("vision") is False
        assert flags.is_enabled("unknown") is False

    def test_env_flags(self, monkeypatch):
        monkeypatch.setenv("ENABLE_STATE_ANALYSIS_STRATEGY", "true")
        monkeypatch.setenv("ENABLE_DOM_STRATEGY", "0")
        flags = StrategyFlags()
        assert flags.is_enabled(StrategyKind.STATE_ANALYSIS)
        assert not flags.is_enabled(StrategyKind.SELECTOR)


class TestDetectionConfig:
    def test_defaults(self):
        config = DetectionConfig()
        assert config.timeout_ms == 90000
        assert config.min_confidence == 0.7
        assert config.start_keywords == DEFAULT_START_KEYWORDS
        assert config.selectors == DEFAULT_START_SELECTORS
        assert config.selectors[0] == "#start-btn"

    def test_keywords_lowercased(self):
        config = DetectionConfig(start_keywords=["START", "Play", ""])
        assert config.start_keywords == ["start", "play"]


class TestAdaptiveConfig:
    """Tests for adaptive loop limits."""

    def test_defaults(self):
        config = AdaptiveConfig()
        assert config.enabled is False
        assert config.max_budget == 0.50
        assert config.reserved_for_final_analysis == 0.10
        assert config.max_actions == 20
        assert config.costs.per_screenshot == 0.02

    def test_reserve_must_be_below_budget(self):
        with pytest.raises(ValueError):
            AdaptiveConfig(max_budget=0.10, reserved_for_final_analysis=0.10)

    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("ENABLE_ADAPTIVE_QA", "yes")
        monkeypatch.setenv("MAX_TEST_DURATION", "60000")
        config = AdaptiveConfig()
        assert config.enabled is True
        assert config.max_duration_ms == 60000


class TestReportingConfig:
    """Tests for ReportingConfig model."""

    def test_default_values(self):
        config = ReportingConfig()
        assert config.save_screenshots is True
        assert config.pass_score == 50

    def test_path_conversion(self):
        config = ReportingConfig(
            screenshots_folder="./custom/screenshots",
            reports_folder="./custom/reports",
        )
        assert isinstance(config.screenshots_folder, Path)
        assert isinstance(config.reports_folder, Path)


class TestLoadConfig:
    """Tests for load_config function."""

    def test_loads_from_json_file(self, temp_dir: Path):
        config_data = {
            "agent": {"model": "test-model", "temperature": 0.5},
            "browser": {"browser": "firefox"},
            "adaptive": {"max_budget": 1.0},
        }
        config_file = temp_dir / "gameqa.json"
        config_file.write_text(json.dumps(config_data))

        config = load_config(config_file)
        assert config.agent.model == "test-model"
        assert config.agent.temperature == 0.5
        assert config.browser.browser == "firefox"
        assert config.adaptive.max_budget == 1.0

    def test_loads_from_yaml_file(self, temp_dir: Path):
        config_file = temp_dir / "gameqa.yaml"
        config_file.write_text("parallel_workers: 3\nreporting:\n  pass_score: 70\n")

        config = load_config(config_file)
        assert config.parallel_workers == 3
        assert config.reporting.pass_score == 70

    def test_cli_overrides(self, temp_dir: Path):
        config_file = temp_dir / "gameqa.json"
        config_file.write_text(json.dumps({"browser": {"browser": "firefox"}}))

        overrides = {
            "browser": "webkit",
            "headful": True,
            "parallel": 4,
            "adaptive": True,
            "budget": 0.3,
            "max_actions": 5,
        }
        config = load_config(config_file, cli_overrides=overrides)
        assert config.browser.browser == "webkit"
        assert config.browser.headless is False
        assert config.parallel_workers == 4
        assert config.adaptive.enabled is True
        assert config.adaptive.max_budget == 0.3
        assert config.adaptive.max_actions == 5

    def test_invalid_override_rejected(self, temp_dir: Path, monkeypatch):
        monkeypatch.chdir(temp_dir)
        with pytest.raises(ConfigurationError):
            load_config(cli_overrides={"budget": 0.05})

    def test_explicit_missing_file(self, temp_dir: Path):
        with pytest.raises(ConfigFileNotFoundError):
            load_config(temp_dir / "missing.json")

    def test_malformed_file(self, temp_dir: Path):
        config_file = temp_dir / "gameqa.json"
        config_file.write_text("{not json")
        with pytest.raises(ConfigurationError):
            load_config(config_file)

    def test_default_config_path(self, temp_dir: Path, monkeypatch):
        monkeypatch.chdir(temp_dir)

        config = load_config()
        assert isinstance(config, QAConfig)
        assert config.agent.model == "gpt-4o"
