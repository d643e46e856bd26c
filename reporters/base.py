"""Base reporter interface for game QA runs."""
from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import List

from qa_types import GameTestResult


class ReportFormat(str, Enum):
    """Supported report formats."""
    JSON = "json"


class BaseReporter(ABC):
    """Abstract base class for report generators."""

    @abstractmethod
    def generate(self, result: GameTestResult, output_dir: Path) -> Path:
        """
        Generate a report for a single game result.

        Args:
            result: Game test result
            output_dir: Directory to write report to

        Returns:
            Path to the generated report file
        """
        pass

    @abstractmethod
    def generate_suite(self, results: List[GameTestResult], output_dir: Path) -> Path:
        """
        Generate a combined report for multiple game results.

        Args:
            results: List of game test results
            output_dir: Directory to write report to

        Returns:
            Path to the generated report file
        """
        pass

    @property
    @abstractmethod
    def format(self) -> ReportFormat:
        """Return the report format this reporter generates."""
        pass
