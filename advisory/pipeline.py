"""
Query orchestration: context → prompt → backend → validation → escalation.
"""

from typing import Any, Optional

from config_validator import load_gateway_settings
from logging_config import get_logger
from models import AdvisoryResponse

from .context import assemble_context, parse_symptoms
from .model_gateway import ModelGateway
from .prompt_builder import build_prompt, validate_query
from .response_validator import validate_response
from .risk_classifier import classify_risk

logger = get_logger(__name__)


def get_health_assistant_response(
    query: Any,
    profile: Any = None,
    metrics: Any = None,
    symptoms: Any = None,
    medical_reports: Any = None,
    message_history: Any = None,
    gateway: Optional[ModelGateway] = None,
) -> AdvisoryResponse:
    """
    Produce a validated, risk-checked advisory for one query.

    Raises:
        QueryValidationError: bad query, raised before any backend call
        GatewayError: the backend call timed out, was rate-limited or failed
        SchemaError: the backend answered without any answer text
    """
    query = validate_query(query)

    context = assemble_context(
        profile=profile,
        metrics=metrics,
        symptoms=symptoms,
        medical_reports=medical_reports,
        message_history=message_history,
    )
    prompt = build_prompt(context, query)

    if gateway is None:
        gateway = ModelGateway.from_settings(load_gateway_settings())

    raw_output = gateway.invoke(prompt)
    response = validate_response(raw_output)
    # Escalation reads the full symptom text, not the prompt-bounded copy.
    response = classify_risk(response, query, parse_symptoms(symptoms))

    logger.info(
        "Advisory response generated",
        extra={'extra_fields': {
            'answer_chars': len(response.answer),
            'is_emergency': response.is_emergency,
            'risk_level': response.risk_level.value,
            'recommendations': len(response.recommendations),
            'preventive_advice': len(response.preventive_advice),
            'follow_up_questions': len(response.follow_up_questions),
        }}
    )
    return response
