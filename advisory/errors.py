"""
Failure taxonomy for the advisory pipeline.

QueryValidationError is the caller's fault and is raised before any backend
call. Every other failure ends in the fallback advisory.
"""

from enum import Enum


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    UPSTREAM = "upstream"
    SCHEMA = "schema"


class AdvisoryError(Exception):
    """Base class for advisory pipeline errors."""
    kind = FailureKind.UPSTREAM


class QueryValidationError(AdvisoryError):
    """The query is missing, not a string, or blank."""
    pass


class GatewayError(AdvisoryError):
    """The generative backend call failed."""

    def __init__(self, message: str, kind: FailureKind = FailureKind.UPSTREAM):
        super().__init__(message)
        self.kind = kind


class ModelTimeoutError(GatewayError):
    def __init__(self, message: str):
        super().__init__(message, FailureKind.TIMEOUT)


class RateLimitedError(GatewayError):
    def __init__(self, message: str):
        super().__init__(message, FailureKind.RATE_LIMITED)


class UpstreamError(GatewayError):
    def __init__(self, message: str):
        super().__init__(message, FailureKind.UPSTREAM)


class SchemaError(AdvisoryError):
    """The backend output holds no extractable answer text."""
    kind = FailureKind.SCHEMA
