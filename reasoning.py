"""Vision/language reasoning service client (OpenAI-compatible chat API)."""
from __future__ import annotations

import base64
import json
import logging
import re
from pathlib import Path
from typing import Any, Optional, Sequence, Type, TypeVar

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI
from pydantic import BaseModel, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from config.models import AgentConfig
from exceptions import (
    ElementNotFoundError,
    LLMConnectionError,
    LLMError,
    LLMResponseError,
    ModelTimeoutError,
)
from prompts import (
    FIND_CLICKABLE_ELEMENTS_PROMPT,
    INSTRUCTION_PROMPT,
    PROGRESSION_PROMPT,
    build_playability_prompt,
    build_state_prompt,
    image_size,
)
from schemas import Candidate, CandidateList, PlayabilityReport, ProgressCheck, Recommendation

ModelT = TypeVar("ModelT", bound=BaseModel)

MAX_ANALYSIS_IMAGES = 6
INSTRUCTION_MIN_CONFIDENCE = 0.5

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _image_part(png: bytes) -> dict[str, Any]:
    encoded = base64.b64encode(png).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{encoded}"}}


def _sample_evenly(items: Sequence[Path], limit: int) -> list[Path]:
    """Keep the first and last items and spread the rest evenly."""
    items = list(items)
    if len(items) <= limit:
        return items
    step = (len(items) - 1) / (limit - 1)
    return [items[round(i * step)] for i in range(limit)]


def parse_json_payload(content: str, model: Type[ModelT]) -> ModelT:
    """Parse a model reply (optionally fenced) and validate it against ``model``."""
    text = _FENCE_RE.sub("", content.strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise LLMResponseError(f"Model reply is not valid JSON: {e}", response=content) from e

    # A bare list is accepted where a list wrapper is expected.
    if isinstance(data, list) and model is CandidateList:
        data = {"candidates": data}
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise LLMResponseError(
            f"Model reply does not match {model.__name__}: {e.error_count()} error(s)",
            response=content,
        ) from e


class ReasoningService:
    """Asks a vision model about screenshots and page state."""

    def __init__(
        self,
        config: AgentConfig,
        client: Optional[AsyncOpenAI] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or logging.getLogger("reasoning")
        self.client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.request_timeout,
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=2.0, min=2.0, max=10),
        reraise=True,
    )
    async def _call_model(self, messages: list[dict[str, Any]]) -> str:
        """Call the model with retry logic."""
        try:
            response = await self.client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content

            if not content:
                raise LLMResponseError("Empty response from model")

            return content
        except LLMError:
            raise
        except APITimeoutError as e:
            raise ModelTimeoutError(self.config.request_timeout) from e
        except APIConnectionError as e:
            raise LLMConnectionError(f"Cannot reach the model endpoint: {e}", base_url=self.config.base_url) from e
        except Exception as e:
            raise LLMError(f"Model call failed: {e}") from e

    async def _ask(self, prompt: str, images: Sequence[bytes], model: Type[ModelT]) -> ModelT:
        content: list[dict[str, Any]] = [{"type": "text", "text": prompt}]
        content.extend(_image_part(png) for png in images)
        reply = await self._call_model([{"role": "user", "content": content}])
        return parse_json_payload(reply, model)

    async def detect_candidates(self, screenshot_path: Path) -> list[Candidate]:
        """Every clickable element the model sees in the screenshot."""
        png = Path(screenshot_path).read_bytes()
        width, height = image_size(png)
        result = await self._ask(
            FIND_CLICKABLE_ELEMENTS_PROMPT.format(width=width, height=height),
            [png],
            CandidateList,
        )
        self.logger.debug(f"Model found {len(result.candidates)} clickable element(s)")
        return result.candidates

    async def recommend_action(
        self,
        html: str,
        screenshot_path: Path,
        prior_actions: Sequence[dict[str, Any]] = (),
        goal: str = "Play the game and exercise its controls",
        metadata: Optional[dict[str, Any]] = None,
    ) -> Recommendation:
        png = Path(screenshot_path).read_bytes()
        width, height = image_size(png)
        prompt = build_state_prompt(
            html=html,
            goal=goal,
            width=width,
            height=height,
            prior_actions=prior_actions,
            metadata=metadata,
        )
        recommendation = await self._ask(prompt, [png], Recommendation)
        self.logger.info(
            f"Recommendation: {recommendation.action} {recommendation.target!r} "
            f"(confidence {recommendation.confidence:.2f})"
        )
        return recommendation

    async def has_state_progressed(self, previous: Path, current: Path) -> bool:
        images = [Path(previous).read_bytes(), Path(current).read_bytes()]
        check = await self._ask(PROGRESSION_PROMPT, images, ProgressCheck)
        return check.progressed

    async def evaluate_playability(
        self,
        screenshots: Sequence[Path],
        metadata: Optional[dict[str, Any]] = None,
        console_errors: Sequence[str] = (),
    ) -> PlayabilityReport:
        if not screenshots:
            raise LLMError("No screenshots to analyze")
        selected = _sample_evenly(screenshots, MAX_ANALYSIS_IMAGES)
        images = [Path(p).read_bytes() for p in selected]
        report = await self._ask(
            build_playability_prompt(metadata, console_errors),
            images,
            PlayabilityReport,
        )
        self.logger.info(f"Playability score: {report.playability_score}")
        return report

    async def perform_instruction(self, driver, instruction: str) -> None:
        """Carry out a natural-language instruction by clicking the matching element."""
        png = await driver.screenshot()
        width, height = image_size(png)
        result = await self._ask(
            INSTRUCTION_PROMPT.format(instruction=instruction, width=width, height=height),
            [png],
            CandidateList,
        )
        viable = [c for c in result.candidates if c.confidence >= INSTRUCTION_MIN_CONFIDENCE]
        if not viable:
            raise ElementNotFoundError(f"No element found for instruction: {instruction}")
        best = max(viable, key=lambda c: c.confidence)
        x, y = best.point.rounded()
        self.logger.info(f"Instruction '{instruction}' -> {best.label} at ({x}, {y})")
        await driver.click_at(x, y)
