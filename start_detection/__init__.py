"""Start-control detection: strategies, candidate selection and orchestration."""
from start_detection.base import StartStrategy
from start_detection.candidates import select_candidate
from start_detection.natural_language import NaturalLanguageStrategy
from start_detection.orchestrator import StrategyOrchestrator, build_start_strategies
from start_detection.selector import SelectorStrategy
from start_detection.state_analysis import StateAnalysisStrategy
from start_detection.vision import VisionStrategy

__all__ = [
    "NaturalLanguageStrategy",
    "SelectorStrategy",
    "StartStrategy",
    "StateAnalysisStrategy",
    "StrategyOrchestrator",
    "VisionStrategy",
    "build_start_strategies",
    "select_candidate",
]
