"""Detects how a game renders (canvas, iframe or plain DOM)."""
from __future__ import annotations

import logging
from typing import Any, Optional

from driver import BrowserDriver
from exceptions import TestPhase, categorize_error
from qa_types import GameType
from utils import with_timeout

DETECTION_SCRIPT = """() => {
    const canvases = document.querySelectorAll('canvas');
    const iframes = Array.from(document.querySelectorAll('iframe'));
    let iframeHasCanvas = false;
    for (const iframe of iframes) {
        try {
            const doc = iframe.contentDocument || (iframe.contentWindow && iframe.contentWindow.document);
            if (doc && doc.querySelector('canvas')) { iframeHasCanvas = true; break; }
        } catch (e) {
            // Cross-origin frames are opaque; embedded games usually live there.
            iframeHasCanvas = true;
            break;
        }
    }
    const text = (document.body && document.body.innerText || '').toLowerCase();
    const hasGameElements =
        document.querySelector('[data-game]') !== null ||
        document.querySelector('.game-container') !== null ||
        document.querySelector('#game') !== null ||
        text.includes('game') ||
        document.title.toLowerCase().includes('game');
    return {
        canvasCount: canvases.length,
        iframeCount: iframes.length,
        iframeHasCanvas,
        hasGameElements,
    };
}"""


def classify(result: dict[str, Any]) -> GameType:
    """Canvas beats iframe beats DOM; anything else is unknown."""
    if result.get("canvasCount", 0) > 0:
        return GameType.CANVAS
    if result.get("iframeCount", 0) > 0 and result.get("iframeHasCanvas"):
        return GameType.IFRAME
    if result.get("hasGameElements"):
        return GameType.DOM
    return GameType.UNKNOWN


class GameDetector:
    def __init__(self, timeout_ms: float = 10000, logger: Optional[logging.Logger] = None):
        self.timeout_ms = timeout_ms
        self.logger = logger or logging.getLogger("game_detector")

    async def detect_type(self, driver: BrowserDriver) -> GameType:
        """One page evaluation; recoverable failures report ``unknown``."""
        try:
            result = await with_timeout(
                driver.evaluate(DETECTION_SCRIPT),
                self.timeout_ms,
                f"Game type detection timed out after {self.timeout_ms:.0f}ms",
            )
        except Exception as e:
            error = categorize_error(e, TestPhase.GAME_DETECTION)
            if not error.recoverable:
                raise error
            self.logger.warning(f"Game type detection failed: {error.message}")
            return GameType.UNKNOWN

        game_type = classify(result or {})
        self.logger.info(f"Detected game type: {game_type.value}")
        return game_type
