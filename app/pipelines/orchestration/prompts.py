"""Prompt text for question generation, scoring, synthesis and CBT replies."""

from __future__ import annotations

from typing import Iterable

from app.pipelines.analysis.types import TextAnalysis

LIKERT_SCALE = "0 (Never) to 6 (Every day)"

STANDARD_QUESTION_SYSTEM = (
    "You are an expert in mental health and burnout assessment. Create professional, "
    "evidence-based burnout assessment statements that a person would rate on a "
    f"7-point scale from {LIKERT_SCALE}. Statements must be clear, direct and focused "
    "on the given domain."
)

MULTIMODAL_QUESTION_SYSTEM = (
    "You are an expert in mental health and burnout assessment. Create a prompt that "
    "asks the user to record a short video about their experience in a specific "
    "domain. It should be open-ended but focused, so that facial expression and "
    "voice tone reveal emotional markers of burnout."
)

SCORE_SYSTEM = (
    "You are a mental health professional specializing in burnout assessment scoring. "
    f"Responses are rated on a scale from {LIKERT_SCALE}; some include multimodal "
    "insights from voice tone and facial expression."
)

SUMMARY_SYSTEM = (
    "You are a mental health professional trained to interpret burnout assessments. "
    "Write a concise 4-5 sentence summary addressed to the user (e.g. 'Today your "
    "burnout assessment shows you...'). Describe the kinds of questions asked, where "
    "the user rated themselves positively or negatively, and insights from their "
    "spoken and written answers. Do not give advice or recommendations."
)

SYNTHESIS_SYSTEM = (
    "You are an expert in psychological analysis and data interpretation. "
    "Answer with a single JSON object and nothing else."
)

CBT_SYSTEM = (
    "You are a CBT therapist guiding a patient through a CBT session. Use concise and "
    "empathetic language. Focus on helping the patient identify and reframe negative "
    "thought patterns."
)


def standard_question_prompt(count: int, domain: str, description: str) -> str:
    return (
        f"Generate {count} burnout assessment statements for the {domain} domain "
        f"({description}). Users will rate them on a scale of 0-6. Put each statement "
        "on its own line with no numbering or prefixes."
    )


def multimodal_question_prompt(domain: str, description: str) -> str:
    return (
        "Only generate a single sentence. Create a video response prompt for the "
        f"{domain} domain ({description}) asking the user to describe a specific "
        "experience or feeling related to this domain."
    )


def score_prompt(questions_and_responses: str) -> str:
    return (
        "Review the following burnout assessment responses:\n"
        f"{questions_and_responses}\n\n"
        "Based on the overall pattern and the multimodal insights, calculate a single "
        "overall burnout score on a scale of 0-10 and explain it in three concise "
        "sentences. Return a JSON object with two fields: 'score' (a number) and "
        "'explanation' (a string)."
    )


def summary_prompt(questions_and_responses: str) -> str:
    return (
        "Review the following burnout assessment session:\n"
        f"{questions_and_responses}\n\n"
        "Generate the 4-5 sentence summary."
    )


def synthesis_prompt(
    text_score: float,
    voice_score: float,
    video_score: float,
    observations: Iterable[str],
) -> str:
    notes = "\n".join(f" - {line}" for line in observations) or " - none"
    return (
        "We have three scores representing a person's emotional expression:\n\n"
        f" - Words: {text_score:.2f}\n"
        f" - Tone: {voice_score:.2f}\n"
        f" - Facial Expression: {video_score:.2f}\n\n"
        "All scores range from 0 to 1. Observations from the session:\n"
        f"{notes}\n\n"
        "Task:\n"
        "  1. Compute a Congruence Score (0-1) for how well these channels align.\n"
        "  2. Determine the Dominant Emotion.\n"
        "  3. Identify any Cognitive Distortions.\n"
        "  4. Provide an Interpretation of these results.\n"
        "  5. Suggest Follow-Up Prompts for further exploration.\n\n"
        "Return JSON with the keys congruenceScore, dominantEmotion, "
        "cognitiveDistortions, interpretation, followUpPrompts."
    )


def therapy_context_message(
    analysis: TextAnalysis | None,
    *,
    retrieved_context: str = "",
    interventions: Iterable[str] = (),
    recurring_patterns: Iterable[str] = (),
    nonverbal_notes: Iterable[str] = (),
) -> str:
    """Fold per-turn analysis and retrieved history into one system message."""

    parts: list[str] = []
    if retrieved_context.strip():
        parts.append(retrieved_context.strip())

    if analysis is not None:
        sentence = (
            f"Based on my analysis, the patient appears to be feeling "
            f"{analysis.primary_emotion or 'neutral'}."
        )
        if analysis.cognitive_distortions:
            sentence += (
                " I've identified these cognitive distortions: "
                + ", ".join(analysis.cognitive_distortions)
                + ". Focus on addressing these patterns in your response."
            )
        if analysis.key_themes:
            sentence += " Key themes to address: " + ", ".join(analysis.key_themes) + "."
        parts.append(sentence)

    recurring = list(recurring_patterns)
    if recurring:
        parts.append(
            "These patterns also appeared in earlier sessions: " + ", ".join(recurring) + "."
        )

    techniques = list(interventions)
    if techniques:
        parts.append("Techniques that may help:\n" + "\n".join(f"- {t}" for t in techniques))

    notes = list(nonverbal_notes)
    if notes:
        parts.append("Non-verbal signals so far: " + "; ".join(notes) + ".")

    return "\n\n".join(parts)


__all__ = [
    "CBT_SYSTEM",
    "MULTIMODAL_QUESTION_SYSTEM",
    "SCORE_SYSTEM",
    "STANDARD_QUESTION_SYSTEM",
    "SUMMARY_SYSTEM",
    "SYNTHESIS_SYSTEM",
    "multimodal_question_prompt",
    "score_prompt",
    "standard_question_prompt",
    "summary_prompt",
    "synthesis_prompt",
    "therapy_context_message",
]
