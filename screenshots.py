"""Screenshot capture and persistence for one game run."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from exceptions import ScreenshotError
from utils import with_timeout

DEFAULT_SCREENSHOT_TIMEOUT_MS = 10000


class ScreenshotStore:
    """Writes numbered PNGs under ``<root>/<run_id>/``."""

    def __init__(
        self,
        root: Path,
        run_id: str,
        timeout_ms: float = DEFAULT_SCREENSHOT_TIMEOUT_MS,
        logger: Optional[logging.Logger] = None,
    ):
        self.directory = Path(root) / run_id
        self.timeout_ms = timeout_ms
        self.logger = logger or logging.getLogger("screenshots")
        self._counter = 0
        self.saved: list[Path] = []

    def save(self, data: bytes, stage: str) -> Path:
        """Persist raw PNG bytes and return the file path."""
        self._counter += 1
        path = self.directory / f"{self._counter:02d}-{stage}.png"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise ScreenshotError(f"Failed to save screenshot: {e}", {"path": str(path)}) from e
        self.saved.append(path)
        return path

    async def capture(self, driver, stage: str) -> Path:
        """Take a screenshot through the driver and save it."""
        data = await with_timeout(
            driver.screenshot(),
            self.timeout_ms,
            f"Screenshot capture timed out after {self.timeout_ms:.0f}ms",
        )
        path = self.save(data, stage)
        self.logger.debug(f"Screenshot saved: {path}")
        return path

    def cleanup(self) -> None:
        """Delete every screenshot written for this run."""
        shutil.rmtree(self.directory, ignore_errors=True)
        self.saved.clear()
