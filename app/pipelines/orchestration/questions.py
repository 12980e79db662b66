"""Burnout question set generation."""

from __future__ import annotations

import asyncio
import logging
import re

from app.pipelines.sessions.models import AssessmentDomain, UnitKind, UnitSpec
from app.services.llm_client import BedrockLlmClient, LlmInvocationError

from .prompts import (
    MULTIMODAL_QUESTION_SYSTEM,
    STANDARD_QUESTION_SYSTEM,
    multimodal_question_prompt,
    standard_question_prompt,
)

logger = logging.getLogger(__name__)

STANDARD_QUESTIONS_PER_DOMAIN = 3

_FALLBACK_STANDARD = {
    AssessmentDomain.WORK: (
        "I feel emotionally drained by my work.",
        "I feel frustrated by the demands of my job.",
        "I find it hard to feel enthusiastic about my work.",
    ),
    AssessmentDomain.PERSONAL: (
        "I feel too tired to engage with friends and family.",
        "I have little patience with the people close to me.",
        "I neglect my own needs to keep up with obligations.",
    ),
    AssessmentDomain.LIFESTYLE: (
        "I have trouble getting restful sleep.",
        "I skip exercise or meals because I am overwhelmed.",
        "I struggle to switch off from work in my free time.",
    ),
}

_FALLBACK_MULTIMODAL = {
    AssessmentDomain.WORK: "Describe a recent moment at work that left you feeling exhausted.",
    AssessmentDomain.PERSONAL: "Describe how your energy levels have affected a recent personal relationship.",
    AssessmentDomain.LIFESTYLE: "Describe what a typical evening looks like for you lately and how you feel during it.",
}

_LIST_PREFIX = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def _clean_lines(raw: str) -> list[str]:
    lines = []
    for line in (raw or "").splitlines():
        cleaned = _LIST_PREFIX.sub("", line).strip().strip('"').strip()
        if cleaned:
            lines.append(cleaned)
    return lines


def standard_unit_id(domain: AssessmentDomain, index: int) -> str:
    return f"{domain.value}_std_{index}"


def multimodal_unit_id(domain: AssessmentDomain, index: int = 1) -> str:
    return f"{domain.value}_multi_{index}"


class BurnoutQuestionGenerator:
    """Three Likert statements plus one vlog prompt per assessment domain.

    Falls back to a fixed question set for a domain when the model is
    unavailable, so an assessment can always start.
    """

    def __init__(self, llm: BedrockLlmClient) -> None:
        self._llm = llm

    async def generate(self) -> tuple[UnitSpec, ...]:
        per_domain = await asyncio.gather(
            *(self._domain_units(domain) for domain in AssessmentDomain)
        )
        return tuple(unit for units in per_domain for unit in units)

    async def _domain_units(self, domain: AssessmentDomain) -> list[UnitSpec]:
        standard, multimodal = await asyncio.gather(
            self._standard(domain), self._multimodal(domain)
        )
        units = [
            UnitSpec(
                unit_id=standard_unit_id(domain, index),
                prompt=prompt,
                kind=UnitKind.LIKERT,
                domain=domain,
            )
            for index, prompt in enumerate(standard, start=1)
        ]
        units.append(
            UnitSpec(
                unit_id=multimodal_unit_id(domain),
                prompt=multimodal,
                kind=UnitKind.VLOG,
                domain=domain,
            )
        )
        return units

    async def _standard(self, domain: AssessmentDomain) -> list[str]:
        try:
            raw = await self._llm.invoke(
                system_prompt=STANDARD_QUESTION_SYSTEM,
                user_prompt=standard_question_prompt(
                    STANDARD_QUESTIONS_PER_DOMAIN, domain.value, domain.description
                ),
                temperature=0.7,
            )
        except LlmInvocationError as exc:
            logger.warning("Using fallback %s questions: %s", domain.value, exc)
            return list(_FALLBACK_STANDARD[domain])

        lines = _clean_lines(raw)[:STANDARD_QUESTIONS_PER_DOMAIN]
        fallback = _FALLBACK_STANDARD[domain]
        while len(lines) < STANDARD_QUESTIONS_PER_DOMAIN:
            lines.append(fallback[len(lines)])
        return lines

    async def _multimodal(self, domain: AssessmentDomain) -> str:
        try:
            raw = await self._llm.invoke(
                system_prompt=MULTIMODAL_QUESTION_SYSTEM,
                user_prompt=multimodal_question_prompt(domain.value, domain.description),
                temperature=0.7,
            )
        except LlmInvocationError as exc:
            logger.warning("Using fallback %s vlog prompt: %s", domain.value, exc)
            return _FALLBACK_MULTIMODAL[domain]

        lines = _clean_lines(raw)
        return lines[0] if lines else _FALLBACK_MULTIMODAL[domain]


__all__ = [
    "BurnoutQuestionGenerator",
    "STANDARD_QUESTIONS_PER_DOMAIN",
    "multimodal_unit_id",
    "standard_unit_id",
]
