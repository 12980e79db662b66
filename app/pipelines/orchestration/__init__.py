"""Session flows built on the analysis, sessions and retrieval packages."""

from .burnout import BurnoutAssessmentOrchestrator, normalize_answer
from .cbt import CbtReply, CbtSessionOrchestrator, SessionInsights
from .questions import BurnoutQuestionGenerator
from .scoring import BurnoutScorer, MultimodalSynthesizer, format_responses

__all__ = [
    "BurnoutAssessmentOrchestrator",
    "BurnoutQuestionGenerator",
    "BurnoutScorer",
    "CbtReply",
    "CbtSessionOrchestrator",
    "MultimodalSynthesizer",
    "SessionInsights",
    "format_responses",
    "normalize_answer",
]
