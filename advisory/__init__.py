from .context import ClinicalContext, assemble_context, parse_symptoms
from .errors import (
    AdvisoryError,
    FailureKind,
    GatewayError,
    ModelTimeoutError,
    QueryValidationError,
    RateLimitedError,
    SchemaError,
    UpstreamError,
)
from .fallback import build_fallback_response
from .model_gateway import ModelGateway, ProbeResult, classify_failure
from .pipeline import get_health_assistant_response
from .prompt_builder import PromptPayload, build_prompt
from .response_validator import validate_response
from .risk_classifier import classify_risk

__all__ = [
    "AdvisoryError",
    "ClinicalContext",
    "FailureKind",
    "GatewayError",
    "ModelGateway",
    "ModelTimeoutError",
    "ProbeResult",
    "PromptPayload",
    "QueryValidationError",
    "RateLimitedError",
    "SchemaError",
    "UpstreamError",
    "assemble_context",
    "build_fallback_response",
    "build_prompt",
    "classify_failure",
    "classify_risk",
    "get_health_assistant_response",
    "parse_symptoms",
    "validate_response",
]
