"""Small shared helpers: timeouts, HTML cleanup and elapsed time."""
from __future__ import annotations

import asyncio
import re
import time
from typing import Awaitable, Optional, TypeVar

from bs4 import BeautifulSoup, Comment

from exceptions import ActionTimeoutError

T = TypeVar("T")

_STRIPPED_TAGS = ["script", "style", "noscript"]
_WHITESPACE_RE = re.compile(r"\s+")


async def with_timeout(
    awaitable: Awaitable[T],
    timeout_ms: float,
    message: Optional[str] = None,
) -> T:
    """Await ``awaitable`` for at most ``timeout_ms`` milliseconds.

    Expiry raises ``ActionTimeoutError`` (category timeout) instead of
    ``asyncio.TimeoutError`` so callers handle one error family. A
    non-positive budget fails immediately without starting the work.
    """
    text = message or f"Operation timed out after {timeout_ms:.0f}ms"
    if timeout_ms <= 0:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise ActionTimeoutError(text, timeout_ms=timeout_ms)
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_ms / 1000)
    except asyncio.TimeoutError as e:
        raise ActionTimeoutError(text, timeout_ms=timeout_ms) from e


def sanitize_html(html: str) -> str:
    """Strip scripts, styles, comments and inline event handlers, then collapse whitespace."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_STRIPPED_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    for tag in soup.find_all(True):
        handlers = [name for name in tag.attrs if name.lower().startswith("on")]
        for name in handlers:
            del tag[name]
    return _WHITESPACE_RE.sub(" ", str(soup)).strip()


def now_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.monotonic() * 1000


def elapsed_ms(started_ms: float) -> float:
    return max(0.0, now_ms() - started_ms)
