"""Pydantic models for validating LLM JSON responses.

Scoring and synthesis both ask the model for a JSON object; these schemas
turn the raw completion into normalized, type-safe objects or fail loudly.
"""

from __future__ import annotations

import json
from typing import List

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator


class ResponseContractError(RuntimeError):
    """Raised when the LLM response contract cannot be validated."""


class _JsonContract(BaseModel):
    model_config = {"populate_by_name": True, "extra": "ignore"}

    @classmethod
    def from_json(cls, payload: str):
        cleaned = _clean_json_payload(payload)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise ResponseContractError(
                f"{cls.__name__}: completion is not JSON ({exc})"
            ) from exc
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ResponseContractError(f"{cls.__name__}: {exc}") from exc


class BurnoutScoreResponse(_JsonContract):
    """``{"score": <0-10>, "explanation": "..."}``"""

    score: float
    explanation: str = ""

    @model_validator(mode="after")
    def clamp_score(self) -> "BurnoutScoreResponse":
        self.score = max(0.0, min(10.0, float(self.score)))
        self.explanation = (self.explanation or "").strip()
        return self


class SynthesisResponse(_JsonContract):
    """Congruence analysis across the text, voice and face channels."""

    congruence_score: float = Field(alias="congruenceScore")
    dominant_emotion: str = Field(default="", alias="dominantEmotion")
    cognitive_distortions: List[str] = Field(default_factory=list, alias="cognitiveDistortions")
    interpretation: str = ""
    follow_up_prompts: List[str] = Field(default_factory=list, alias="followUpPrompts")

    @field_validator("cognitive_distortions", "follow_up_prompts", mode="before")
    @classmethod
    def coerce_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @model_validator(mode="after")
    def clamp_congruence(self) -> "SynthesisResponse":
        self.congruence_score = max(0.0, min(1.0, float(self.congruence_score)))
        return self


def _clean_json_payload(payload: str) -> str:
    """Strip Markdown code fences and keep the outermost JSON object."""
    if not payload:
        return ""

    cleaned = payload.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    cleaned = cleaned.strip()

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end != -1 and end > start:
        cleaned = cleaned[start : end + 1]
    return cleaned


__all__ = [
    "BurnoutScoreResponse",
    "ResponseContractError",
    "SynthesisResponse",
]
