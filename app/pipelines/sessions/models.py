"""Session state: units of work, per-unit responses and the final summary."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from app.pipelines.analysis.types import Modality


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def frozen_map(value: Mapping | None = None) -> Mapping:
    return MappingProxyType(dict(value or {}))


class SessionKind(str, Enum):
    BURNOUT = "burnout"
    CBT = "cbt"


class UnitKind(str, Enum):
    LIKERT = "likert"
    OPEN_TEXT = "open_text"
    VLOG = "vlog"
    AUDIO = "audio"


class AssessmentDomain(str, Enum):
    WORK = "work"
    PERSONAL = "personal"
    LIFESTYLE = "lifestyle"

    @property
    def description(self) -> str:
        return _DOMAIN_DESCRIPTIONS[self]


_DOMAIN_DESCRIPTIONS = {
    AssessmentDomain.WORK: "Work-related stress, workload and job satisfaction",
    AssessmentDomain.PERSONAL: "Personal relationships, emotional wellbeing and self-care",
    AssessmentDomain.LIFESTYLE: "Sleep, exercise, nutrition and work-life balance",
}

_REQUIRED_MODALITIES = {
    UnitKind.LIKERT: frozenset(),
    UnitKind.OPEN_TEXT: frozenset(),
    UnitKind.VLOG: frozenset({Modality.VIDEO}),
    UnitKind.AUDIO: frozenset({Modality.AUDIO}),
}


@dataclass(frozen=True)
class UnitSpec:
    """One question or conversational turn that needs an answer."""

    unit_id: str
    prompt: str
    kind: UnitKind
    domain: AssessmentDomain | None = None

    @property
    def required_modalities(self) -> frozenset[Modality]:
        return _REQUIRED_MODALITIES[self.kind]

    @property
    def is_multimodal(self) -> bool:
        return bool(self.required_modalities)


@dataclass(frozen=True)
class ResponseEntry:
    """Everything received for one unit, in whatever order it arrived.

    ``insights`` holds serialized analysis results per modality and
    ``errors`` the failure text for modalities whose analysis failed. A
    modality is present in at most one of the two.
    """

    unit_id: str
    required_modalities: frozenset[Modality] = frozenset()
    user_text: str | None = None
    insights: Mapping[Modality, str] = field(default_factory=frozen_map)
    errors: Mapping[Modality, str] = field(default_factory=frozen_map)
    answered: bool = False

    @property
    def text_response(self) -> str | None:
        """The stored answer, with failures of required analyses appended."""

        failures = "; ".join(
            self.errors[modality]
            for modality in sorted(self.errors, key=lambda m: m.value)
            if modality in self.required_modalities
        )
        if self.user_text is None:
            return failures or None
        if failures:
            return f"{self.user_text} ({failures})"
        return self.user_text

    @property
    def received_modalities(self) -> frozenset[Modality]:
        return frozenset(self.insights) | frozenset(self.errors)


@dataclass(frozen=True)
class ScoreSummary:
    """Result of finalizing a session; computed once and never replaced."""

    score: float
    explanation: str
    summary: str
    computed_at: datetime = field(default_factory=_utcnow)
    details: Mapping[str, Any] = field(default_factory=frozen_map)


@dataclass(frozen=True)
class SessionRecord:
    session_id: str
    user_id: str
    kind: SessionKind
    units: tuple[UnitSpec, ...] = ()
    responses: Mapping[str, ResponseEntry] = field(default_factory=frozen_map)
    completed: bool = False
    summary: ScoreSummary | None = None
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None

    def unit(self, unit_id: str) -> UnitSpec | None:
        return next((unit for unit in self.units if unit.unit_id == unit_id), None)

    def entry(self, unit_id: str) -> ResponseEntry | None:
        return self.responses.get(unit_id)

    @property
    def answered_count(self) -> int:
        return sum(
            1
            for unit in self.units
            if (entry := self.responses.get(unit.unit_id)) is not None and entry.answered
        )

    @property
    def all_units_answered(self) -> bool:
        return bool(self.units) and self.answered_count == len(self.units)


__all__ = [
    "AssessmentDomain",
    "frozen_map",
    "ResponseEntry",
    "ScoreSummary",
    "SessionKind",
    "SessionRecord",
    "UnitKind",
    "UnitSpec",
]
