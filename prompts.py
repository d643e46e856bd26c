"""Prompts for the game QA reasoning service."""
from __future__ import annotations

import io
import json
from typing import Any, Optional, Sequence

from PIL import Image

HTML_PREVIEW_CHARS = 2000
RECENT_ACTION_WINDOW = 20


FIND_CLICKABLE_ELEMENTS_PROMPT = """You are analyzing a game screenshot to identify all clickable UI elements (buttons, links, interactive areas).

1. Identify clickable elements: start buttons ("Start", "Play", "Begin Game"), menu buttons, navigation buttons, clearly clickable game elements and text links.
2. Coordinates: give the CENTER of each element in pixels, measured from the top-left corner (0, 0) of the screenshot. The screenshot is {width}x{height} pixels. Wrong coordinates make the click miss.
3. Labels: describe the element and include any visible text, e.g. "Start Game Button".
4. Confidence (0-1): 0.9-1.0 clearly visible labelled button; 0.7-0.89 likely clickable; 0.5-0.69 uncertain. Omit anything below 0.5.

Respond with JSON only:
{{"candidates": [{{"label": "Start Game Button", "x": 200, "y": 200, "confidence": 0.95}}]}}"""


STATE_ANALYSIS_PROMPT = """You are playing a browser game to test it. Given the screenshot and the page HTML, recommend the single next action that moves toward the goal.

Allowed actions:
- "click": target is {{"x": <px>, "y": <px>}} in screenshot pixels ({width}x{height})
- "keypress": target is a key name such as "ArrowUp", "Space", "Enter" or "w"
- "wait": target is a number of milliseconds
- "complete": the goal is reached or nothing else can be tested; target is null

Also give up to three alternatives (click, keypress or wait) to try if the primary action fails.

Respond with JSON only:
{{"action": "click", "target": {{"x": 640, "y": 360}}, "reasoning": "...", "confidence": 0.8,
  "alternatives": [{{"action": "keypress", "target": "Enter", "reasoning": "..."}}]}}"""


PROGRESSION_PROMPT = """Compare the two game screenshots. The first was taken before an action, the second after it.
Did the game state visibly change (movement, score, new screen, animation)? Ignore cursor-only changes.

Respond with JSON only: {"progressed": true, "reasoning": "..."}"""


PLAYABILITY_PROMPT = """You are analyzing a sequence of screenshots from a browser game test to determine playability and identify issues.
The screenshots are in chronological order: initial load, after the game was started, during play, and the final state.

Evaluate:
1. Game load success (critical): no error screens, no blank canvas or white screen, UI rendered.
2. Control responsiveness (major): did the game visibly respond between screenshots?
3. Crash detection (critical): error overlays, frozen or blank final state.

Score 0-100: 90-100 works perfectly; 70-89 minor issues; 50-69 significant issues but functions; 30-49 barely functional; 0-29 does not load or is broken.
Issue severity is "critical" (does not load, crashes), "major" (significant bugs) or "minor" (cosmetic).

Respond with JSON only:
{"playability_score": 85, "issues": [{"severity": "minor", "description": "..."}], "summary": "..."}"""


INSTRUCTION_PROMPT = """You control a browser by clicking. Locate the element that carries out this instruction: "{instruction}".
The screenshot is {width}x{height} pixels; give the CENTER of the element from the top-left corner.

Respond with JSON only:
{{"candidates": [{{"label": "...", "x": 0, "y": 0, "confidence": 0.0}}]}}
Return an empty list if no such element is visible."""


def image_size(png: bytes) -> tuple[int, int]:
    """Pixel dimensions of a screenshot, so coordinates match what the model sees."""
    with Image.open(io.BytesIO(png)) as image:
        return image.size


def _describe_target(target: Any) -> str:
    if isinstance(target, dict) and "x" in target:
        return f"({target['x']}, {target['y']})"
    return json.dumps(target)


def format_prior_actions(prior_actions: Sequence[dict[str, Any]]) -> str:
    """Summarize recent actions into what worked and what to avoid."""
    if not prior_actions:
        return ""

    recent = list(prior_actions)[-RECENT_ACTION_WINDOW:]
    worked = [a for a in recent if a.get("success") and a.get("state_progressed")]
    failed = [a for a in recent if not (a.get("success") and a.get("state_progressed"))]

    lines: list[str] = []
    if worked:
        lines.append("Actions that changed the game state (build on these):")
        for i, a in enumerate(worked[-10:], 1):
            lines.append(f"{i}. {a['action']} {_describe_target(a.get('target'))} - {a.get('reasoning', '')}")
    if failed:
        lines.append("Actions that failed or changed nothing (do not repeat exactly):")
        for i, a in enumerate(failed[-10:], 1):
            why = "execution failed" if not a.get("success") else "state did not progress"
            lines.append(
                f"{i}. {a['action']} {_describe_target(a.get('target'))} - {a.get('reasoning', '')} ({why})"
            )
    rate = len(worked) / len(recent)
    lines.append(f"Success rate over the last {len(recent)} actions: {rate * 100:.1f}%")
    return "\n".join(lines)


def build_state_prompt(
    *,
    html: str,
    goal: str,
    width: int,
    height: int,
    prior_actions: Sequence[dict[str, Any]] = (),
    metadata: Optional[dict[str, Any]] = None,
) -> str:
    parts = [STATE_ANALYSIS_PROMPT.format(width=width, height=height), f"Current goal: {goal}"]

    history = format_prior_actions(prior_actions)
    if history:
        parts.append(history)

    metadata = metadata or {}
    if metadata.get("title"):
        parts.append(f"Game: {metadata['title']}")
    if metadata.get("genre"):
        parts.append(f"Genre: {metadata['genre']}")
    if metadata.get("expected_controls"):
        parts.append(f"Expected controls: {metadata['expected_controls']}")

    if html:
        preview = html[:HTML_PREVIEW_CHARS]
        parts.append(f"HTML (first {HTML_PREVIEW_CHARS} chars):\n{preview}")
        if len(html) > HTML_PREVIEW_CHARS:
            parts.append(f"[HTML truncated, total length: {len(html)} chars]")
    return "\n\n".join(parts)


def build_playability_prompt(
    metadata: Optional[dict[str, Any]] = None,
    console_errors: Sequence[str] = (),
) -> str:
    parts = [PLAYABILITY_PROMPT]
    metadata = metadata or {}
    if metadata.get("title"):
        parts.append(f"Game: {metadata['title']}")
    if metadata.get("expected_controls"):
        parts.append(f"Expected controls: {metadata['expected_controls']}")
    if console_errors:
        listed = "\n".join(f"- {e[:200]}" for e in list(console_errors)[:10])
        parts.append(f"Browser console errors seen during the test:\n{listed}")
    return "\n\n".join(parts)
