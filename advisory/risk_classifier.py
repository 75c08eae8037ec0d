"""
Rule-based escalation of the backend's risk assessment.

Each rule maps a set of keywords to a minimum RiskLevel. Keywords are matched
against the user's query and against the text of symptoms marked severe.
The classifier only ever raises urgency; over-flagged responses are reviewed
downstream.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from logging_config import get_logger
from models import AdvisoryResponse, RiskLevel, Symptom, SymptomSeverity

logger = get_logger(__name__)


@dataclass(frozen=True)
class EscalationRule:
    name: str
    keywords: Tuple[str, ...]
    minimum: RiskLevel


ESCALATION_RULES: Tuple[EscalationRule, ...] = (
    EscalationRule(
        name="chest_pain",
        keywords=("chest pain",),
        minimum=RiskLevel.EMERGENCY,
    ),
    EscalationRule(
        name="breathing_difficulty",
        keywords=("difficulty breathing", "can't breathe", "cannot breathe"),
        minimum=RiskLevel.EMERGENCY,
    ),
    EscalationRule(
        name="loss_of_consciousness",
        keywords=("loss of consciousness", "lost consciousness"),
        minimum=RiskLevel.EMERGENCY,
    ),
    EscalationRule(
        name="stroke_signs",
        keywords=("stroke", "face drooping", "slurred speech"),
        minimum=RiskLevel.EMERGENCY,
    ),
)


@dataclass(frozen=True)
class RiskSignal:
    minimum: RiskLevel
    matched_rules: Tuple[str, ...] = ()


def _normalize(text: str) -> str:
    return " ".join(text.lower().replace("’", "'").split())


def _severe_symptom_text(symptoms: Iterable[Symptom]) -> List[str]:
    texts = []
    for symptom in symptoms:
        if symptom.severity != SymptomSeverity.SEVERE:
            continue
        texts.append(symptom.type)
        texts.append(symptom.description)
        texts.extend(symptom.accompanied_by)
    return texts


def detect_risk_signal(
    query: str,
    symptoms: Iterable[Symptom] = (),
    rules: Tuple[EscalationRule, ...] = ESCALATION_RULES,
) -> RiskSignal:
    """
    Evaluate the rule table against the query and severe symptoms.

    Returns:
        RiskSignal with the highest minimum level among matching rules
        (LOW when nothing matches) and the names of the matching rules.
    """
    corpus = _normalize(" \n ".join([query or ""] + _severe_symptom_text(symptoms)))

    minimum = RiskLevel.LOW
    matched = []
    for rule in rules:
        if any(keyword in corpus for keyword in rule.keywords):
            matched.append(rule.name)
            if rule.minimum.rank > minimum.rank:
                minimum = rule.minimum

    return RiskSignal(minimum=minimum, matched_rules=tuple(matched))


def classify_risk(
    response: AdvisoryResponse,
    query: str,
    symptoms: Iterable[Symptom] = (),
    rules: Optional[Tuple[EscalationRule, ...]] = None,
) -> AdvisoryResponse:
    """
    Raise the response's risk level to what the input implies, never lower it.
    """
    signal = detect_risk_signal(query, symptoms, rules or ESCALATION_RULES)

    if signal.minimum.rank <= response.risk_level.rank:
        return response

    logger.warning(
        f"Escalating risk level from {response.risk_level.value} to {signal.minimum.value}",
        extra={'extra_fields': {
            'backend_risk_level': response.risk_level.value,
            'escalated_risk_level': signal.minimum.value,
            'matched_rules': list(signal.matched_rules),
        }}
    )

    return response.model_copy(update={
        "risk_level": signal.minimum,
        "is_emergency": signal.minimum == RiskLevel.EMERGENCY,
    })
