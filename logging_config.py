"""
Logging configuration and helpers for the Health Advisory API.

Provides structured JSON logs in production and human-readable console
output in development, plus helpers that give every request and every
generative-backend call a consistent log shape.
"""

import logging
import os
import sys
import json
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class StructuredFormatter(logging.Formatter):
    """
    Formatter that renders each record as a single JSON object.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        for key in ('request_id', 'endpoint'):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Formatter for console output during local development.
    """

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


def setup_logging(
    log_level: Optional[str] = None,
    structured: Optional[bool] = None
) -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level name. Defaults to the LOG_LEVEL env var or INFO.
        structured: Whether to emit JSON logs. Defaults to LOG_FORMAT=json, or
                    to True when ENVIRONMENT is production.
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
    level = getattr(logging, log_level, logging.INFO)

    environment = os.getenv('ENVIRONMENT', 'development').lower()

    if structured is None:
        log_format = os.getenv('LOG_FORMAT', '').lower()
        if log_format:
            structured = log_format == 'json'
        else:
            structured = environment == 'production'

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(StructuredFormatter() if structured else HumanReadableFormatter())
    root_logger.addHandler(console_handler)

    root_logger.info(
        f"Logging configured: level={logging.getLevelName(level)}, "
        f"environment={environment}, structured={structured}"
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adapter that merges request-scoped context into every record's extras.
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = kwargs.setdefault('extra', {})
        for key, value in self.extra.items():
            extra.setdefault(key, value)
        return msg, kwargs


def get_request_logger(
    name: str,
    request_id: Optional[str] = None,
    endpoint: Optional[str] = None
) -> LoggerAdapter:
    """
    Get a logger that tags records with the request id and endpoint.

    Example:
        >>> logger = get_request_logger(__name__, endpoint="/api/ai")
        >>> logger.info("Processing advisory request")
    """
    context = {}
    if request_id:
        context['request_id'] = request_id
    if endpoint:
        context['endpoint'] = endpoint
    return LoggerAdapter(get_logger(name), context)


def log_error(
    logger: logging.Logger,
    error: Exception,
    message: str,
    extra: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log an error with its traceback and structured context.
    """
    log_data = {
        'error_type': type(error).__name__,
        'error_message': str(error),
    }
    if extra:
        log_data.update(extra)

    logger.error(
        f"{message}: {error}",
        exc_info=error,
        extra={'extra_fields': log_data}
    )


def log_model_call(
    logger: logging.Logger,
    operation: str,
    success: bool,
    duration_ms: Optional[float] = None,
    error: Optional[Exception] = None,
    extra: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log one call to the generative backend with timing and outcome.

    Args:
        logger: Logger instance
        operation: 'invoke' for advisory generation, 'probe' for connectivity checks
        success: Whether the call produced a usable response
        duration_ms: Wall time of the call
        error: Exception raised by the call, if any
        extra: Model id, API version, failure kind, ...

    Example:
        >>> log_model_call(
        ...     logger, 'invoke', True, duration_ms=812.4,
        ...     extra={'model_id': 'anthropic.claude-3-haiku-20240307-v1:0'}
        ... )
    """
    log_data = {
        'model_operation': operation,
        'success': success,
    }
    if duration_ms is not None:
        log_data['duration_ms'] = round(duration_ms, 2)
    if error is not None:
        log_data['error_type'] = type(error).__name__
        log_data['error_message'] = str(error)
    if extra:
        log_data.update(extra)

    message = f"Model {operation}: {'success' if success else 'failed'}"
    if duration_ms is not None:
        message += f" ({duration_ms:.2f}ms)"

    # Backend failures are degraded, not fatal: the caller falls back.
    logger.log(
        logging.INFO if success else logging.WARNING,
        message,
        extra={'extra_fields': log_data}
    )


def log_request_start(
    logger: logging.Logger,
    endpoint: str,
    extra: Optional[Dict[str, Any]] = None
) -> None:
    log_data = {
        'endpoint': endpoint,
        'event': 'request_start'
    }
    if extra:
        log_data.update(extra)

    logger.info(
        f"Request started: {endpoint}",
        extra={'extra_fields': log_data}
    )


def log_request_end(
    logger: logging.Logger,
    endpoint: str,
    status_code: int,
    duration_ms: float,
    extra: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log the completion of a request; the level follows the status code.
    """
    log_data = {
        'endpoint': endpoint,
        'status_code': status_code,
        'duration_ms': round(duration_ms, 2),
        'event': 'request_end'
    }
    if extra:
        log_data.update(extra)

    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger.log(
        level,
        f"Request completed: {endpoint} - {status_code} ({duration_ms:.2f}ms)",
        extra={'extra_fields': log_data}
    )


if not logging.getLogger().handlers:
    setup_logging()
