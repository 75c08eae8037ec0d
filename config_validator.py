"""
Configuration loading and validation for the Health Advisory API.

This module provides:
- Gateway settings (model id, API version, region, timeout, generation limits)
  read from environment variables
- Validation of those variables and of the resulting settings
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv

from logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL_ID = "anthropic.claude-3-haiku-20240307-v1:0"
DEFAULT_API_VERSION = "bedrock-2023-05-31"
DEFAULT_REGION = "us-east-1"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.2

# Variables that must parse as numbers when present
NUMERIC_ENV_VARS = {
    "MODEL_TIMEOUT_SECONDS": float,
    "MODEL_MAX_TOKENS": int,
    "MODEL_TEMPERATURE": float,
}

# Either of these selects the model; the inference profile wins
MODEL_ENV_VARS = [
    "BEDROCK_INFERENCE_PROFILE_ARN",
    "BEDROCK_MODEL",
]


@dataclass
class ValidationResult:
    """Result of a validation check"""
    is_valid: bool
    errors: List[str]
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class GatewaySettings:
    """Everything the Model Gateway needs to reach the generative backend."""
    model_id: str = DEFAULT_MODEL_ID
    api_version: str = DEFAULT_API_VERSION
    region: str = DEFAULT_REGION
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE


def _parse_number(env_vars: Dict[str, str], name: str, default):
    raw = env_vars.get(name)
    if raw is None or raw == "":
        return default
    try:
        return NUMERIC_ENV_VARS[name](raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {name}={raw!r}, using {default}")
        return default


def load_gateway_settings(env_vars: Optional[Dict[str, str]] = None) -> GatewaySettings:
    """
    Build GatewaySettings from environment variables.

    Args:
        env_vars: Mapping of environment variables. If None, loads .env and
                  uses os.environ.
    """
    if env_vars is None:
        load_dotenv()
        env_vars = dict(os.environ)

    model_id = (
        env_vars.get("BEDROCK_INFERENCE_PROFILE_ARN")
        or env_vars.get("BEDROCK_MODEL")
        or DEFAULT_MODEL_ID
    )
    region = env_vars.get("BEDROCK_REGION") or env_vars.get("AWS_REGION") or DEFAULT_REGION

    return GatewaySettings(
        model_id=model_id,
        api_version=env_vars.get("BEDROCK_API_VERSION") or DEFAULT_API_VERSION,
        region=region,
        timeout_seconds=_parse_number(env_vars, "MODEL_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
        max_tokens=_parse_number(env_vars, "MODEL_MAX_TOKENS", DEFAULT_MAX_TOKENS),
        temperature=_parse_number(env_vars, "MODEL_TEMPERATURE", DEFAULT_TEMPERATURE),
    )


def validate_environment_variables(env_vars: Optional[Dict[str, str]] = None) -> ValidationResult:
    """
    Check environment variables for malformed values and useful omissions.

    Args:
        env_vars: Dictionary of environment variables. If None, uses os.environ

    Returns:
        ValidationResult with validation status, errors and warnings
    """
    if env_vars is None:
        env_vars = dict(os.environ)

    errors = []
    warnings = []

    for var, cast in NUMERIC_ENV_VARS.items():
        raw = env_vars.get(var)
        if raw:
            try:
                cast(raw)
            except ValueError:
                errors.append(f"Environment variable '{var}' must be a {cast.__name__}, got {raw!r}")

    if not any(env_vars.get(var) for var in MODEL_ENV_VARS):
        warnings.append(
            f"None of {MODEL_ENV_VARS} set, will default to {DEFAULT_MODEL_ID}"
        )

    if not env_vars.get("BEDROCK_REGION") and not env_vars.get("AWS_REGION"):
        warnings.append(
            f"Neither BEDROCK_REGION nor AWS_REGION set, will default to {DEFAULT_REGION}"
        )

    if "ENVIRONMENT" not in env_vars:
        warnings.append(
            "ENVIRONMENT not set, will default to 'development'"
        )

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings
    )


def validate_gateway_settings(settings: GatewaySettings) -> ValidationResult:
    """
    Validate the values the Model Gateway will run with.
    """
    errors = []
    warnings = []

    if not settings.model_id.strip():
        errors.append("Model identifier must not be empty")

    if not settings.api_version.strip():
        errors.append("API version must not be empty")

    if settings.timeout_seconds <= 0:
        errors.append(f"Model timeout must be positive, got {settings.timeout_seconds}")
    elif settings.timeout_seconds > 60:
        warnings.append(
            f"Model timeout of {settings.timeout_seconds}s is long, clients may give up first"
        )

    if not 1 <= settings.max_tokens <= 8192:
        errors.append(f"Max tokens must be between 1 and 8192, got {settings.max_tokens}")

    if not 0 <= settings.temperature <= 1:
        errors.append(f"Temperature must be between 0 and 1, got {settings.temperature}")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings
    )


def validate_all_configurations(
    env_vars: Optional[Dict[str, str]] = None
) -> Tuple[bool, Dict[str, ValidationResult]]:
    """
    Validate environment variables and the gateway settings derived from them.

    Returns:
        Tuple of (all_valid, results_dict)
    """
    if env_vars is None:
        env_vars = dict(os.environ)

    results = {
        "environment": validate_environment_variables(env_vars),
        "gateway": validate_gateway_settings(load_gateway_settings(env_vars)),
    }

    all_valid = all(result.is_valid for result in results.values())
    return all_valid, results


def log_validation_results(results: Dict[str, ValidationResult]) -> None:
    for category, result in results.items():
        for error in result.errors:
            logger.error(f"Configuration error ({category}): {error}")
        for warning in result.warnings:
            logger.warning(f"Configuration warning ({category}): {warning}")
