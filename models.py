# models.py
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """
    Base for every model on the HTTP contract: camelCase names on the wire,
    snake_case attributes in Python, unknown keys ignored.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


def _text_list(value) -> list:
    """Medication entries may arrive as {name, dosage} objects; keep the name."""
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        value = [value]
    if not isinstance(value, (list, tuple, set)):
        return [str(value)]
    items = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("name") or item.get("type")
        if item:
            items.append(str(item))
    return items


# ─────────────────────────────────────────
# CLINICAL INPUTS
# ─────────────────────────────────────────

class Lifestyle(WireModel):
    smoker: Optional[bool] = None
    alcohol_consumption: Optional[str] = None
    exercise_frequency: Optional[float] = None  # sessions per week
    diet: Optional[str] = None
    stress_level: Optional[float] = None


class HealthProfile(WireModel):
    """
    Demographic and history attributes of the user. Supplied already
    validated by the persistence layer; only the shape is normalized here.
    """
    name: Optional[str] = None
    age: Optional[int] = None
    sex: Optional[str] = None
    height: Optional[float] = None  # cm
    weight: Optional[float] = None  # kg
    has_heart_condition: Optional[bool] = None
    had_heart_attack: Optional[bool] = None
    last_heart_attack: Optional[str] = None
    conditions: List[str] = []
    allergies: List[str] = []
    medications: List[str] = []
    family_history: List[str] = []
    lifestyle: Optional[Lifestyle] = None

    @field_validator("conditions", "allergies", "medications", "family_history", mode="before")
    @classmethod
    def _as_text_list(cls, value):
        return _text_list(value)


class HealthMetrics(WireModel):
    heart_rate: Optional[float] = None
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    blood_glucose: Optional[float] = None
    cholesterol: Optional[float] = None
    weight: Optional[float] = None
    last_updated: Optional[str] = None  # None = latest, recency unknown


class SymptomSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)


_SEVERITY_ORDER = [SymptomSeverity.MILD, SymptomSeverity.MODERATE, SymptomSeverity.SEVERE]


class Symptom(WireModel):
    type: str = ""
    severity: SymptomSeverity = SymptomSeverity.MILD
    description: str = ""
    duration: Optional[str] = None
    accompanied_by: List[str] = []
    timestamp: Optional[str] = None

    @field_validator("type", "description", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value

    @field_validator("severity", mode="before")
    @classmethod
    def _coerce_severity(cls, value):
        # The dashboard records severity on a 0-10 slider.
        if isinstance(value, bool):
            return SymptomSeverity.MILD
        if isinstance(value, (int, float)):
            if value <= 3:
                return SymptomSeverity.MILD
            if value <= 6:
                return SymptomSeverity.MODERATE
            return SymptomSeverity.SEVERE
        if isinstance(value, str):
            try:
                return SymptomSeverity(value.strip().lower())
            except ValueError:
                return SymptomSeverity.MILD
        return SymptomSeverity.MILD

    @field_validator("duration", mode="before")
    @classmethod
    def _duration_as_text(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("accompanied_by", mode="before")
    @classmethod
    def _as_text_list(cls, value):
        return _text_list(value)


class MedicalReport(WireModel):
    type: str = ""
    date: Optional[str] = None
    doctor: Optional[str] = None
    facility: Optional[str] = None
    findings: Optional[str] = None
    recommendations: Optional[str] = None
    follow_up: bool = False
    follow_up_date: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value


class Message(WireModel):
    """
    One conversation turn. The chat UI sends {text, isBot, type}; those are
    read as content and role, and type is kept so emergency notices can be
    left out of the context.
    """
    role: Literal["user", "assistant"]
    content: str
    type: Optional[str] = None
    timestamp: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_chat_ui(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "content" not in data and "text" in data:
            data["content"] = data.pop("text")
        if "role" not in data and "isBot" in data:
            data["role"] = "assistant" if data.pop("isBot") else "user"
        return data


# ─────────────────────────────────────────
# ADVISORY OUTPUT
# ─────────────────────────────────────────

class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    EMERGENCY = "emergency"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MODERATE, RiskLevel.HIGH, RiskLevel.EMERGENCY]


class AdvisoryResponse(WireModel):
    """
    Response returned by the assistant to the frontend. Always satisfies
    isEmergency == (riskLevel == "emergency").
    """
    answer: str = Field(min_length=1)
    is_emergency: bool = False
    risk_level: RiskLevel = RiskLevel.LOW
    recommendations: List[str] = []
    preventive_advice: List[str] = []
    follow_up_questions: List[str] = []

    @model_validator(mode="after")
    def _emergency_flag_matches_risk(self):
        if self.is_emergency != (self.risk_level == RiskLevel.EMERGENCY):
            raise ValueError("isEmergency and riskLevel=emergency must be set together")
        return self

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
