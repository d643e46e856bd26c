"""Playwright browser controller implementing the driver port."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Literal, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Locator,
    Page,
    Playwright,
    async_playwright,
    TimeoutError as PlaywrightTimeout,
)

from driver import BoundingBox
from exceptions import (
    BrowserError,
    BrowserNotStartedError,
    ElementNotInteractableError,
    InstructionNotSupportedError,
    NavigationError,
    ScreenshotError,
)

BrowserType = Literal["chromium", "firefox", "webkit"]

InstructionHandler = Callable[["SimpleBrowser", str], Awaitable[None]]


class PlaywrightElement:
    """ElementHandle over the first match of a Playwright locator."""

    def __init__(self, locator: Locator):
        self._locator = locator

    async def is_visible(self, timeout_ms: float) -> bool:
        try:
            await self._locator.wait_for(state="visible", timeout=timeout_ms)
            return True
        except PlaywrightTimeout:
            return False

    async def click(self) -> None:
        await self._locator.click()

    async def bounding_box(self) -> Optional[BoundingBox]:
        box = await self._locator.bounding_box()
        if box is None:
            return None
        return BoundingBox(x=box["x"], y=box["y"], width=box["width"], height=box["height"])


class SimpleBrowser:
    """Browser manager using Playwright with multi-browser support and console capture."""

    def __init__(
        self,
        browser_type: BrowserType = "chromium",
        headless: bool = True,
        viewport_width: int = 1280,
        viewport_height: int = 720,
        slow_mo: int = 0,
        instruction_handler: Optional[InstructionHandler] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.browser_type = browser_type
        self.headless = headless
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.slow_mo = slow_mo
        self.instruction_handler = instruction_handler
        self.logger = logger or logging.getLogger("browser")

        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._console_messages: list[dict[str, Any]] = []

    def _ensure_started(self) -> None:
        """Raise if browser not started."""
        if self.page is None:
            raise BrowserNotStartedError()

    async def start(self) -> None:
        """Start the browser with specified engine."""
        try:
            self._playwright = await async_playwright().start()

            browser_launcher = getattr(self._playwright, self.browser_type)
            launch_options: dict[str, Any] = {"headless": self.headless}
            if self.slow_mo > 0:
                launch_options["slow_mo"] = self.slow_mo

            self.browser = await browser_launcher.launch(**launch_options)
            self.context = await self.browser.new_context(
                viewport={"width": self.viewport_width, "height": self.viewport_height}
            )
            self.page = await self.context.new_page()
        except Exception as e:
            raise BrowserError(f"Browser launch failed: {e}", {"browser": self.browser_type}) from e

        # Capture console messages
        self.page.on("console", self._handle_console)
        self.page.on("pageerror", self._handle_page_error)

        self.logger.info(f"Browser started: {self.browser_type} (headless={self.headless})")

    def _handle_console(self, msg: Any) -> None:
        """Capture console messages."""
        self._console_messages.append({
            "type": msg.type,
            "text": msg.text,
            "location": msg.location,
        })
        # Keep only last 100 messages
        if len(self._console_messages) > 100:
            self._console_messages = self._console_messages[-100:]

    def _handle_page_error(self, error: Any) -> None:
        """Uncaught page exceptions are recorded as console errors."""
        self._console_messages.append({"type": "error", "text": str(error), "location": {}})

    async def close(self) -> None:
        """Close the browser and clean up resources."""
        if self.page:
            await self.page.close()
        if self.context:
            await self.context.close()
        if self.browser:
            await self.browser.close()
        if self._playwright:
            await self._playwright.stop()
        self.page = None
        self.logger.info("Browser closed")

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    async def goto(
        self,
        url: str,
        wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = "load",
        timeout: float = 30000,
    ) -> None:
        """Navigate to a URL with configurable wait strategy."""
        self._ensure_started()
        try:
            await self.page.goto(url, wait_until=wait_until, timeout=timeout)
        except PlaywrightTimeout as e:
            raise NavigationError(f"Navigation timed out: {url}", url=url, timeout=timeout) from e
        except Exception as e:
            raise NavigationError(f"Navigation failed: {e}", url=url) from e

    async def wait_for_load_state(
        self,
        state: Literal["load", "domcontentloaded", "networkidle"] = "networkidle",
        timeout: float = 30000,
    ) -> bool:
        """Wait for page to reach specified load state. Returns False on timeout."""
        self._ensure_started()
        try:
            await self.page.wait_for_load_state(state, timeout=timeout)
            return True
        except PlaywrightTimeout:
            return False

    # ─────────────────────────────────────────────────────────────────────────
    # Driver port
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def supports_instructions(self) -> bool:
        return self.instruction_handler is not None

    async def locate(self, selector: str) -> Optional[PlaywrightElement]:
        """Return the first element matching ``selector``, or None if nothing matches."""
        self._ensure_started()
        locator = self.page.locator(selector).first
        if await locator.count() == 0:
            return None
        return PlaywrightElement(locator)

    async def perform_instruction(self, text: str) -> None:
        """Act on a natural-language instruction through the attached handler."""
        if self.instruction_handler is None:
            raise InstructionNotSupportedError()
        await self.instruction_handler(self, text)

    async def click_at(self, x: float, y: float) -> None:
        """Click at viewport coordinates."""
        self._ensure_started()
        if not (0 <= x <= self.viewport_width and 0 <= y <= self.viewport_height):
            raise ElementNotInteractableError(
                "Click target outside the viewport",
                coordinates=(x, y),
                reason=f"viewport is {self.viewport_width}x{self.viewport_height}",
            )
        await self.page.mouse.click(x, y)

    async def press_key(self, key: str) -> None:
        """Press a keyboard key."""
        self._ensure_started()
        await self.page.keyboard.press(key)

    async def screenshot(self, full_page: bool = False) -> bytes:
        """Take a PNG screenshot of the viewport."""
        self._ensure_started()
        try:
            return await self.page.screenshot(full_page=full_page)
        except Exception as e:
            raise ScreenshotError(f"Screenshot failed: {e}") from e

    async def evaluate(self, expression: str) -> Any:
        self._ensure_started()
        return await self.page.evaluate(expression)

    async def get_html(self) -> str:
        self._ensure_started()
        return await self.page.content()

    # ─────────────────────────────────────────────────────────────────────────
    # Console
    # ─────────────────────────────────────────────────────────────────────────

    def get_console_errors(self) -> list[str]:
        """Text of captured console errors and warnings."""
        return [
            m["text"] for m in self._console_messages if m.get("type") in {"error", "warning"}
        ]
