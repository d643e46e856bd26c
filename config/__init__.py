"""Configuration module for the game QA agent."""
from config.models import (
    AdaptiveConfig,
    AgentConfig,
    BrowserConfig,
    CostConfig,
    DetectionConfig,
    QAConfig,
    ReportingConfig,
    StrategyFlags,
    load_config,
)

__all__ = [
    "AdaptiveConfig",
    "AgentConfig",
    "BrowserConfig",
    "CostConfig",
    "DetectionConfig",
    "QAConfig",
    "ReportingConfig",
    "StrategyFlags",
    "load_config",
]
