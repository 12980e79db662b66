"""Pure merge of updates into a ``ResponseEntry``.

A text update and a modality update commute: applying them in either order
yields equal entries. Repeated updates to the same modality are
last-writer-wins; ``answered`` never goes back to False.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Union

from app.pipelines.analysis.types import Modality

from .models import ResponseEntry, UnitKind, UnitSpec, frozen_map


@dataclass(frozen=True)
class TextUpdate:
    text: str


@dataclass(frozen=True)
class ModalityUpdate:
    """Either a serialized analysis ``payload`` or an ``error`` for one modality."""

    modality: Modality
    payload: str | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if (self.payload is None) == (self.error is None):
            raise ValueError("ModalityUpdate needs exactly one of payload or error")


EntryUpdate = Union[TextUpdate, ModalityUpdate]


def empty_entry(unit: UnitSpec) -> ResponseEntry:
    return ResponseEntry(unit_id=unit.unit_id, required_modalities=unit.required_modalities)


def is_answered(entry: ResponseEntry, unit: UnitSpec) -> bool:
    if unit.kind in (UnitKind.LIKERT, UnitKind.OPEN_TEXT):
        return entry.user_text is not None
    return unit.required_modalities <= entry.received_modalities


def merge_entry(old: ResponseEntry | None, update: EntryUpdate, unit: UnitSpec) -> ResponseEntry:
    base = old if old is not None else empty_entry(unit)

    if isinstance(update, TextUpdate):
        merged = replace(base, user_text=update.text)
    else:
        insights = dict(base.insights)
        errors = dict(base.errors)
        if update.payload is not None:
            insights[update.modality] = update.payload
            errors.pop(update.modality, None)
        else:
            errors[update.modality] = update.error
            insights.pop(update.modality, None)
        merged = replace(base, insights=frozen_map(insights), errors=frozen_map(errors))

    return replace(merged, answered=base.answered or is_answered(merged, unit))


__all__ = [
    "EntryUpdate",
    "ModalityUpdate",
    "TextUpdate",
    "empty_entry",
    "is_answered",
    "merge_entry",
]
