"""
Response validation and repair.

The backend may return anything from clean JSON to prose. Raw output is
decoded once into a ParsedOutput (WellFormed | PlainText | Empty) and then
coerced into an AdvisoryResponse. Only output with no answer text at all is
rejected, with SchemaError.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from logging_config import get_logger
from models import AdvisoryResponse, RiskLevel

from .errors import SchemaError

logger = get_logger(__name__)

ANSWER_KEYS = ("answer", "response", "reply", "message", "text")
TRUE_STRINGS = {"true", "yes", "1"}
RISK_ALIASES = {
    "medium": RiskLevel.MODERATE,
    "elevated": RiskLevel.HIGH,
    "severe": RiskLevel.EMERGENCY,
    "critical": RiskLevel.EMERGENCY,
    "urgent": RiskLevel.EMERGENCY,
}

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_WORD_RE = re.compile(r"[a-z]+")


@dataclass(frozen=True)
class WellFormed:
    data: Dict[str, Any]


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class Empty:
    pass


ParsedOutput = Union[WellFormed, PlainText, Empty]


def _load_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def _as_text(raw: Any) -> str:
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    if isinstance(raw, (list, tuple)):
        return "\n".join(str(item) for item in raw if item is not None)
    return str(raw)


def parse_output(raw: Any) -> ParsedOutput:
    """
    Decode raw backend output.

    JSON is tried on the text with markdown fences removed, then on the
    outermost {...} embedded in it. An object found inside prose only counts
    as WellFormed when it carries an answer; otherwise the prose wins.
    """
    if raw is None:
        return Empty()
    if isinstance(raw, dict):
        return WellFormed(raw)

    text = _as_text(raw).strip()
    if not text:
        return Empty()

    unfenced = _FENCE_RE.sub("", text).strip()
    data = _load_object(unfenced)
    if data is not None:
        return WellFormed(data)

    match = _OBJECT_RE.search(unfenced)
    if match:
        data = _load_object(match.group(0))
        if data is not None and _extract_answer(data):
            return WellFormed(data)

    return PlainText(text)


def _field(data: Dict[str, Any], camel: str, snake: str) -> Any:
    return data[camel] if camel in data else data.get(snake)


def _extract_answer(data: Dict[str, Any]) -> str:
    for key in ANSWER_KEYS:
        value = data.get(key)
        if isinstance(value, (list, tuple)):
            value = "\n".join(str(item).strip() for item in value if str(item).strip())
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def coerce_text_list(value: Any) -> List[str]:
    """A single string becomes a one-item list; blanks are dropped."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        value = [value]
    items = []
    for item in value:
        if item is None:
            continue
        if isinstance(item, (dict, list)):
            item = json.dumps(item, sort_keys=True, ensure_ascii=False)
        text = str(item).strip()
        if text:
            items.append(text)
    return items


def coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _risk_word(word: str) -> Optional[RiskLevel]:
    if word in RISK_ALIASES:
        return RISK_ALIASES[word]
    try:
        return RiskLevel(word)
    except ValueError:
        return None


def coerce_risk_level(value: Any) -> RiskLevel:
    """
    Read a backend risk label. Phrases such as "high risk" resolve to the most
    urgent level they name; only labels naming no level at all become LOW.
    """
    if isinstance(value, RiskLevel):
        return value
    if not isinstance(value, str):
        return RiskLevel.LOW

    normalized = value.strip().lower()
    level = _risk_word(normalized)
    if level is not None:
        return level

    levels = [lvl for lvl in map(_risk_word, _WORD_RE.findall(normalized)) if lvl is not None]
    if not levels:
        return RiskLevel.LOW
    return max(levels, key=lambda lvl: lvl.rank)


def validate_response(raw: Any) -> AdvisoryResponse:
    """
    Coerce raw backend output into an AdvisoryResponse.

    Raises:
        SchemaError: if the output contains no answer text at all
    """
    parsed = parse_output(raw)

    if isinstance(parsed, Empty):
        raise SchemaError("Model returned an empty response")

    if isinstance(parsed, PlainText):
        logger.info(
            "Model returned unstructured text, degrading to plain answer",
            extra={'extra_fields': {'answer_chars': len(parsed.text)}}
        )
        return AdvisoryResponse(answer=parsed.text)

    data = parsed.data
    answer = _extract_answer(data)
    if not answer:
        raise SchemaError(f"Model response has no answer text (keys: {sorted(data)})")

    is_emergency = coerce_bool(_field(data, "isEmergency", "is_emergency"))
    risk_level = coerce_risk_level(_field(data, "riskLevel", "risk_level"))

    # The flag and the level must agree; urgency wins.
    if is_emergency or risk_level == RiskLevel.EMERGENCY:
        is_emergency = True
        risk_level = RiskLevel.EMERGENCY

    return AdvisoryResponse(
        answer=answer,
        is_emergency=is_emergency,
        risk_level=risk_level,
        recommendations=coerce_text_list(data.get("recommendations")),
        preventive_advice=coerce_text_list(_field(data, "preventiveAdvice", "preventive_advice")),
        follow_up_questions=coerce_text_list(_field(data, "followUpQuestions", "follow_up_questions")),
    )
