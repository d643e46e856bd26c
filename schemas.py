"""Pydantic schemas for the JSON payloads returned by the reasoning service."""
from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator


class Point(BaseModel):
    """Viewport coordinate in CSS pixels."""

    x: float = Field(ge=0)
    y: float = Field(ge=0)

    def rounded(self) -> tuple[int, int]:
        return round(self.x), round(self.y)


class Candidate(BaseModel):
    """A labelled clickable region proposed by the vision model."""

    label: str
    x: float = Field(ge=0)
    y: float = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0)

    @property
    def point(self) -> Point:
        return Point(x=self.x, y=self.y)


class CandidateList(BaseModel):
    candidates: list[Candidate] = Field(default_factory=list)


ActionTarget = Union[Point, str, float, None]


def _coerce_target(action: str, target: object) -> object:
    # Models sometimes send a click target as [x, y] or {"x": .., "y": ..}.
    if action == "click":
        if isinstance(target, (list, tuple)) and len(target) == 2:
            return Point(x=target[0], y=target[1])
        if isinstance(target, dict):
            return Point.model_validate(target)
    return target


class AlternativeAction(BaseModel):
    """A fallback the executor tries when the primary action fails."""

    action: Literal["click", "keypress", "wait"]
    target: ActionTarget = None
    reasoning: str = ""

    @model_validator(mode="before")
    @classmethod
    def coerce_target(cls, data: object) -> object:
        if isinstance(data, dict) and "action" in data:
            data = {**data, "target": _coerce_target(data["action"], data.get("target"))}
        return data


class Recommendation(BaseModel):
    """Next action recommended for the current game state."""

    action: Literal["click", "keypress", "wait", "complete"]
    target: ActionTarget = None
    reasoning: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    alternatives: list[AlternativeAction] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def coerce_target(cls, data: object) -> object:
        if isinstance(data, dict) and "action" in data:
            data = {**data, "target": _coerce_target(data["action"], data.get("target"))}
        return data


class ProgressCheck(BaseModel):
    progressed: bool
    reasoning: str = ""


class Issue(BaseModel):
    """A problem found while testing a game."""

    severity: Literal["critical", "major", "minor"] = "major"
    description: str
    source: Literal["vision", "console", "detection", "runtime"] = "vision"

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, v: object) -> object:
        if isinstance(v, str):
            v = v.strip().lower()
            return v if v in {"critical", "major", "minor"} else "major"
        return v


class PlayabilityReport(BaseModel):
    """Final verdict on a game from its captured screenshots."""

    playability_score: int = Field(ge=0, le=100)
    issues: list[Issue] = Field(default_factory=list)
    summary: str = ""

    @field_validator("playability_score", mode="before")
    @classmethod
    def clamp_score(cls, v: object) -> object:
        if isinstance(v, (int, float)):
            return max(0, min(100, int(round(v))))
        return v
