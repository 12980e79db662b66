"""Emotion vector reduction helpers."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .types import EmotionScore

DEFAULT_TOP_K = 3


def top_emotions(
    entries: Iterable[Mapping[str, Any] | EmotionScore],
    k: int = DEFAULT_TOP_K,
    *,
    label_key: str = "name",
    score_key: str = "score",
) -> tuple[EmotionScore, ...]:
    """Return the ``k`` highest scoring emotions, best first.

    Accepts either ``EmotionScore`` instances or raw provider dicts; the
    dict keys differ per provider (Hume uses ``name``/``score``,
    Rekognition ``Type``/``Confidence``).
    """

    scored: list[EmotionScore] = []
    for entry in entries or ():
        if isinstance(entry, EmotionScore):
            scored.append(entry)
            continue
        label = entry.get(label_key)
        value = entry.get(score_key)
        if label is None or value is None:
            continue
        try:
            scored.append(EmotionScore(label=str(label), score=float(value)))
        except (TypeError, ValueError):
            continue

    scored.sort(key=lambda item: item.score, reverse=True)
    return tuple(scored[: max(k, 0)])


def dominant_label(emotions: Iterable[EmotionScore]) -> str | None:
    best = max(emotions, key=lambda item: item.score, default=None)
    return best.label if best else None


__all__ = ["DEFAULT_TOP_K", "dominant_label", "top_emotions"]
