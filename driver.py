"""Browser driver port used by strategies, the interactor and the loop.

Strategies only talk to these protocols, so tests can drive them with
in-memory fakes and ``browser.SimpleBrowser`` is one adapter among others.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, TypedDict, runtime_checkable


class BoundingBox(TypedDict):
    x: float
    y: float
    width: float
    height: float


def box_center(box: BoundingBox) -> tuple[float, float]:
    return box["x"] + box["width"] / 2, box["y"] + box["height"] / 2


@runtime_checkable
class ElementHandle(Protocol):
    """First element matched by a selector."""

    async def is_visible(self, timeout_ms: float) -> bool:
        """Wait up to ``timeout_ms`` for the element to become visible."""
        ...

    async def click(self) -> None:
        ...

    async def bounding_box(self) -> Optional[BoundingBox]:
        ...


@runtime_checkable
class BrowserDriver(Protocol):
    """Operations the QA engine needs from a browser page."""

    @property
    def supports_instructions(self) -> bool:
        """Whether ``perform_instruction`` can act on natural-language text."""
        ...

    async def locate(self, selector: str) -> Optional[ElementHandle]:
        ...

    async def perform_instruction(self, text: str) -> None:
        ...

    async def click_at(self, x: float, y: float) -> None:
        ...

    async def press_key(self, key: str) -> None:
        ...

    async def screenshot(self) -> bytes:
        ...

    async def evaluate(self, expression: str) -> Any:
        ...

    async def get_html(self) -> str:
        ...
