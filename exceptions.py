"""Custom exception hierarchy and error categorization for the game QA agent."""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Optional

import openai
from playwright.async_api import TimeoutError as PlaywrightTimeout
from pydantic import ValidationError


class ErrorCategory(str, Enum):
    """Error categories used to decide whether a run can continue."""

    TIMEOUT = "timeout"
    BROWSER_INIT = "browser_init"
    NAVIGATION = "navigation"
    ELEMENT_DETECTION = "element_detection"
    ACTION_EXECUTION = "action_execution"
    REASONING_SERVICE = "reasoning_service"
    UNKNOWN = "unknown"


RECOVERABLE_CATEGORIES = frozenset(
    {
        ErrorCategory.TIMEOUT,
        ErrorCategory.ELEMENT_DETECTION,
        ErrorCategory.ACTION_EXECUTION,
        ErrorCategory.REASONING_SERVICE,
    }
)


class TestPhase(str, Enum):
    """Phase of a game test run, recorded on categorized errors."""

    __test__ = False

    INITIALIZATION = "initialization"
    NAVIGATION = "navigation"
    GAME_DETECTION = "game_detection"
    START_BUTTON_DETECTION = "start_button_detection"
    GAMEPLAY_SIMULATION = "gameplay_simulation"
    ADAPTIVE_QA_LOOP = "adaptive_qa_loop"
    VISION_ANALYSIS = "vision_analysis"
    CLEANUP = "cleanup"


class GameQAError(Exception):
    """Base exception for all game QA errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        category: Optional[ErrorCategory] = None,
        phase: Optional[TestPhase] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if category is not None:
            self.category = category
        self.phase = phase

    @property
    def recoverable(self) -> bool:
        return self.category in RECOVERABLE_CATEGORIES

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# Timeouts
class ActionTimeoutError(GameQAError):
    """Raised when a single UI or model operation exceeds its timeout."""

    category = ErrorCategory.TIMEOUT

    def __init__(self, message: str, timeout_ms: Optional[float] = None):
        details = {"timeout_ms": timeout_ms} if timeout_ms is not None else {}
        super().__init__(message, details)
        self.timeout_ms = timeout_ms


# Browser-related exceptions
class BrowserError(GameQAError):
    """Base exception for browser automation errors."""

    category = ErrorCategory.BROWSER_INIT


class BrowserNotStartedError(BrowserError):
    """Raised when attempting to use browser before starting."""

    def __init__(self):
        super().__init__("Browser has not been started. Call start() first.")


class NavigationError(BrowserError):
    """Raised when page navigation fails."""

    category = ErrorCategory.NAVIGATION

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        details = {}
        if url:
            details["url"] = url
        if timeout:
            details["timeout"] = timeout
        super().__init__(message, details)
        self.url = url
        self.timeout = timeout


class ElementNotFoundError(BrowserError):
    """Raised when an element cannot be found at coordinates or by selector."""

    category = ErrorCategory.ELEMENT_DETECTION

    def __init__(
        self,
        message: str,
        coordinates: Optional[tuple[float, float]] = None,
        selector: Optional[str] = None,
    ):
        details = {}
        if coordinates:
            details["coordinates"] = coordinates
        if selector:
            details["selector"] = selector
        super().__init__(message, details)
        self.coordinates = coordinates
        self.selector = selector


class ElementNotInteractableError(BrowserError):
    """Raised when a click, key press or instruction cannot be carried out."""

    category = ErrorCategory.ACTION_EXECUTION

    def __init__(
        self,
        message: str,
        coordinates: Optional[tuple[float, float]] = None,
        reason: Optional[str] = None,
    ):
        details = {}
        if coordinates:
            details["coordinates"] = coordinates
        if reason:
            details["reason"] = reason
        super().__init__(message, details)
        self.coordinates = coordinates
        self.reason = reason


class InstructionNotSupportedError(BrowserError):
    """Raised when the driver has no natural-language instruction capability."""

    category = ErrorCategory.ACTION_EXECUTION

    def __init__(self):
        super().__init__("Driver does not support natural-language instructions")


class ScreenshotError(BrowserError):
    """Raised when screenshot capture fails."""

    category = ErrorCategory.ELEMENT_DETECTION


# LLM-related exceptions
class LLMError(GameQAError):
    """Base exception for reasoning service errors."""

    category = ErrorCategory.REASONING_SERVICE


class LLMConnectionError(LLMError):
    """Raised when unable to connect to the reasoning service."""

    def __init__(self, message: str, base_url: Optional[str] = None):
        details = {"base_url": base_url} if base_url else {}
        super().__init__(message, details)
        self.base_url = base_url


class LLMResponseError(LLMError):
    """Raised when the model returns an invalid or unparseable response."""

    def __init__(self, message: str, response: Optional[str] = None):
        details = {"response_preview": response[:200] if response else None}
        super().__init__(message, details)
        self.response = response


class ModelTimeoutError(LLMError):
    """Raised when a model call times out."""

    category = ErrorCategory.TIMEOUT

    def __init__(self, timeout: float):
        super().__init__(f"Model call timed out after {timeout}s", {"timeout": timeout})
        self.timeout = timeout


# Game definition exceptions
class GameDefinitionError(GameQAError):
    """Base exception for game manifest loading errors."""

    pass


class GameLoadError(GameDefinitionError):
    """Raised when a game manifest file cannot be loaded or parsed."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        details = {"file_path": file_path} if file_path else {}
        super().__init__(message, details)
        self.file_path = file_path


class GameValidationError(GameDefinitionError):
    """Raised when a game definition is invalid."""

    def __init__(self, message: str, game_id: Optional[str] = None, field: Optional[str] = None):
        details = {}
        if game_id:
            details["game_id"] = game_id
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.game_id = game_id
        self.field = field


# Configuration exceptions
class ConfigurationError(GameQAError):
    """Raised when configuration is invalid."""

    pass


class ConfigFileNotFoundError(ConfigurationError):
    """Raised when a required config file is not found."""

    def __init__(self, file_path: str):
        super().__init__(f"Configuration file not found: {file_path}", {"file_path": file_path})
        self.file_path = file_path


_MESSAGE_PATTERNS: tuple[tuple[tuple[str, ...], ErrorCategory], ...] = (
    (("timeout", "timed out"), ErrorCategory.TIMEOUT),
    (("navigation", "navigate", "net::err"), ErrorCategory.NAVIGATION),
    (("browser", "target closed", "page closed", "has been closed"), ErrorCategory.BROWSER_INIT),
    (("screenshot", "element", "selector", "locator"), ErrorCategory.ELEMENT_DETECTION),
    (("click", "press", "keyboard", "mouse"), ErrorCategory.ACTION_EXECUTION),
    (("openai", "api", "model", "rate limit"), ErrorCategory.REASONING_SERVICE),
)


def _category_for(error: BaseException) -> ErrorCategory:
    if isinstance(error, (asyncio.TimeoutError, PlaywrightTimeout)):
        return ErrorCategory.TIMEOUT
    if isinstance(error, (openai.APIError, ValidationError)):
        return ErrorCategory.REASONING_SERVICE

    message = str(error).lower()
    for needles, category in _MESSAGE_PATTERNS:
        if any(needle in message for needle in needles):
            return category
    return ErrorCategory.UNKNOWN


def categorize_error(error: BaseException, phase: Optional[TestPhase] = None) -> GameQAError:
    """Classify any exception into a GameQAError with a category.

    GameQAErrors pass through unchanged (their phase is filled in if missing).
    Anything else is classified by type first, then by message, and wrapped
    with the original chained as ``__cause__``. Unclassified errors fall into
    ``ErrorCategory.UNKNOWN``, which is not recoverable.
    """
    if isinstance(error, GameQAError):
        if error.phase is None:
            error.phase = phase
        return error

    category = _category_for(error)
    message = str(error) or type(error).__name__
    wrapped = GameQAError(
        message,
        details={"error_type": type(error).__name__},
        category=category,
        phase=phase,
    )
    wrapped.__cause__ = error
    return wrapped
