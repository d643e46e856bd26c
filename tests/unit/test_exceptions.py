"""Unit tests for error categorization."""
from __future__ import annotations

import asyncio

import pytest

from exceptions import (
    ActionTimeoutError,
    BrowserError,
    ElementNotFoundError,
    ErrorCategory,
    GameQAError,
    LLMResponseError,
    NavigationError,
    ScreenshotError,
    TestPhase,
    categorize_error,
)


class TestCategories:
    """Each exception type carries a fixed category."""

    @pytest.mark.parametrize(
        "error, category, recoverable",
        [
            (ActionTimeoutError("slow", timeout_ms=100), ErrorCategory.TIMEOUT, True),
            (BrowserError("launch failed"), ErrorCategory.BROWSER_INIT, False),
            (NavigationError("dns", url="https://x"), ErrorCategory.NAVIGATION, False),
            (ElementNotFoundError("missing", selector="#a"), ErrorCategory.ELEMENT_DETECTION, True),
            (ScreenshotError("blank"), ErrorCategory.ELEMENT_DETECTION, True),
            (LLMResponseError("bad json", response="{"), ErrorCategory.REASONING_SERVICE, True),
            (GameQAError("mystery"), ErrorCategory.UNKNOWN, False),
        ],
    )
    def test_category_and_recoverability(self, error, category, recoverable):
        assert error.category == category
        assert error.recoverable is recoverable

    def test_details_in_str(self):
        error = ActionTimeoutError("Click timed out", timeout_ms=250)
        assert "timeout_ms" in str(error)
        assert error.message == "Click timed out"


class TestCategorizeError:
    def test_game_qa_error_passes_through_with_phase(self):
        original = ElementNotFoundError("no button")
        result = categorize_error(original, TestPhase.START_BUTTON_DETECTION)
        assert result is original
        assert result.phase == TestPhase.START_BUTTON_DETECTION

    def test_existing_phase_kept(self):
        original = GameQAError("x", phase=TestPhase.NAVIGATION)
        assert categorize_error(original, TestPhase.CLEANUP).phase == TestPhase.NAVIGATION

    def test_asyncio_timeout_is_timeout(self):
        result = categorize_error(asyncio.TimeoutError(), TestPhase.ADAPTIVE_QA_LOOP)
        assert result.category == ErrorCategory.TIMEOUT
        assert result.recoverable
        assert isinstance(result.__cause__, asyncio.TimeoutError)

    @pytest.mark.parametrize(
        "message, category",
        [
            ("net::ERR_NAME_NOT_RESOLVED", ErrorCategory.NAVIGATION),
            ("Target closed", ErrorCategory.BROWSER_INIT),
            ("locator resolved to hidden element", ErrorCategory.ELEMENT_DETECTION),
            ("mouse click intercepted", ErrorCategory.ACTION_EXECUTION),
            ("rate limit reached", ErrorCategory.REASONING_SERVICE),
            ("something odd", ErrorCategory.UNKNOWN),
        ],
    )
    def test_message_classification(self, message, category):
        result = categorize_error(RuntimeError(message))
        assert result.category == category
        assert result.details["error_type"] == "RuntimeError"

    def test_unknown_is_not_recoverable(self):
        assert categorize_error(KeyError("k")).recoverable is False

    def test_empty_message_uses_type_name(self):
        assert categorize_error(ValueError()).message == "ValueError"
