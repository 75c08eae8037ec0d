"""
Clinical context assembly.

Turns the optional, loosely-shaped profile/metrics/symptoms/reports/history
fields of a request into one bounded ClinicalContext. Anything missing or of
the wrong shape is dropped; assembly never fails.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from logging_config import get_logger
from models import HealthMetrics, HealthProfile, MedicalReport, Message, Symptom

logger = get_logger(__name__)

MAX_SYMPTOMS = 5
MAX_MEDICAL_REPORTS = 3
MAX_HISTORY_TURNS = 6

# Free-text fields are cut to these lengths before reaching the prompt
MAX_REPORT_TEXT_CHARS = 150
MAX_SYMPTOM_DESCRIPTION_CHARS = 300
MAX_MESSAGE_CHARS = 1000
TRUNCATION_SUFFIX = "..."

EMERGENCY_MESSAGE_TYPE = "emergency"

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True)
class ClinicalContext:
    profile: Optional[HealthProfile] = None
    metrics: Optional[HealthMetrics] = None
    symptoms: Tuple[Symptom, ...] = ()
    medical_reports: Tuple[MedicalReport, ...] = ()
    message_history: Tuple[Message, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.profile is not None or self.metrics is not None or self.symptoms
            or self.medical_reports or self.message_history
        )

    def to_prompt_dict(self) -> Dict[str, Any]:
        """
        Clinical facts for the prompt, in wire (camelCase) names. The message
        history is rendered separately by the prompt builder.
        """
        data: Dict[str, Any] = {}
        if self.profile is not None:
            data["profile"] = _dump(self.profile)
        if self.metrics is not None:
            data["metrics"] = _dump(self.metrics)
        if self.symptoms:
            data["symptoms"] = [_dump(s) for s in self.symptoms]
        if self.medical_reports:
            data["medicalReports"] = [_dump(r) for r in self.medical_reports]
        return data


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _coerce_model(model_cls: Type[ModelT], raw: Any) -> Optional[ModelT]:
    if isinstance(raw, model_cls):
        return raw
    if not isinstance(raw, dict):
        return None
    try:
        return model_cls.model_validate(raw)
    except ValidationError as e:
        logger.debug(f"Dropping malformed {model_cls.__name__}: {e.error_count()} errors")
        return None


def _coerce_list(model_cls: Type[ModelT], raw: Any) -> List[ModelT]:
    if not isinstance(raw, (list, tuple)):
        return []
    items = []
    for entry in raw:
        item = _coerce_model(model_cls, entry)
        if item is not None:
            items.append(item)
    return items


def parse_symptoms(raw: Any) -> Tuple[Symptom, ...]:
    """Every well-formed symptom, uncapped and untruncated."""
    return tuple(_coerce_list(Symptom, raw))


def _truncate(text: Optional[str], limit: int) -> Optional[str]:
    if text is None or len(text) <= limit:
        return text
    return text[:limit].rstrip() + TRUNCATION_SUFFIX


def _select_symptoms(symptoms: List[Symptom]) -> Tuple[Symptom, ...]:
    # Callers send most recent first; the stable sort keeps that order
    # within a severity.
    ranked = sorted(symptoms, key=lambda s: s.severity.rank, reverse=True)
    return tuple(
        s.model_copy(update={"description": _truncate(s.description, MAX_SYMPTOM_DESCRIPTION_CHARS)})
        for s in ranked[:MAX_SYMPTOMS]
    )


def _select_reports(reports: List[MedicalReport]) -> Tuple[MedicalReport, ...]:
    dated = [r for r in reports if r.date]
    undated = [r for r in reports if not r.date]
    dated.sort(key=lambda r: r.date, reverse=True)
    return tuple(
        r.model_copy(update={
            "findings": _truncate(r.findings, MAX_REPORT_TEXT_CHARS),
            "recommendations": _truncate(r.recommendations, MAX_REPORT_TEXT_CHARS),
        })
        for r in (dated + undated)[:MAX_MEDICAL_REPORTS]
    )


def _select_history(messages: List[Message]) -> Tuple[Message, ...]:
    turns = [
        m for m in messages
        if m.content.strip() and (m.type or "").lower() != EMERGENCY_MESSAGE_TYPE
    ]
    return tuple(
        m.model_copy(update={"content": _truncate(m.content, MAX_MESSAGE_CHARS)})
        for m in turns[-MAX_HISTORY_TURNS:]
    )


def assemble_context(
    profile: Any = None,
    metrics: Any = None,
    symptoms: Any = None,
    medical_reports: Any = None,
    message_history: Any = None,
) -> ClinicalContext:
    """
    Normalize and bound the optional clinical inputs of a request.

    Args:
        profile: HealthProfile dict (or model), else ignored
        metrics: HealthMetrics dict (or model), else ignored
        symptoms: list of Symptom dicts, most recent first
        medical_reports: list of MedicalReport dicts
        message_history: list of Message dicts, oldest first

    Returns:
        ClinicalContext with at most MAX_SYMPTOMS symptoms (most severe first),
        MAX_MEDICAL_REPORTS reports (most recent first) and the last
        MAX_HISTORY_TURNS conversation turns.
    """
    context = ClinicalContext(
        profile=_coerce_model(HealthProfile, profile),
        metrics=_coerce_model(HealthMetrics, metrics),
        symptoms=_select_symptoms(list(parse_symptoms(symptoms))),
        medical_reports=_select_reports(_coerce_list(MedicalReport, medical_reports)),
        message_history=_select_history(_coerce_list(Message, message_history)),
    )

    logger.debug(
        "Clinical context assembled",
        extra={'extra_fields': {
            'has_profile': context.profile is not None,
            'has_metrics': context.metrics is not None,
            'symptoms': len(context.symptoms),
            'medical_reports': len(context.medical_reports),
            'history_turns': len(context.message_history),
        }}
    )
    return context
