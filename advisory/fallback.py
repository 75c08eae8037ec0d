"""
Canned advisory returned when the generative backend cannot answer.
"""

from typing import Union

from models import AdvisoryResponse, RiskLevel

from .errors import AdvisoryError, FailureKind

RATE_LIMITED_ANSWER = (
    "I'm currently experiencing high demand and have reached my API usage limits. "
    "Please try again in a few moments."
)

UNAVAILABLE_ANSWER = (
    "I'm having trouble accessing my knowledge database right now. "
    "This might be due to a temporary service disruption."
)

FALLBACK_RECOMMENDATIONS = (
    "Try asking your question again in a few moments",
    "Check your internet connection",
    "If the issue persists, try a simpler question",
)

FALLBACK_FOLLOW_UP_QUESTIONS = (
    "Can I help with something else?",
    "Would you like general health information?",
    "Could you rephrase your question?",
)


def build_fallback_response(failure: Union[FailureKind, AdvisoryError]) -> AdvisoryResponse:
    """
    Build the degraded-mode advisory for a failed backend call.

    Rate limiting gets a "high demand" answer; every other failure gets a
    generic "temporarily unavailable" one. No preventive advice is invented.
    """
    kind = failure.kind if isinstance(failure, AdvisoryError) else failure

    return AdvisoryResponse(
        answer=RATE_LIMITED_ANSWER if kind == FailureKind.RATE_LIMITED else UNAVAILABLE_ANSWER,
        is_emergency=False,
        risk_level=RiskLevel.LOW,
        recommendations=list(FALLBACK_RECOMMENDATIONS),
        preventive_advice=[],
        follow_up_questions=list(FALLBACK_FOLLOW_UP_QUESTIONS),
    )
