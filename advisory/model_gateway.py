"""
Model Gateway: the only component that talks to the generative backend.

Invokes an Anthropic model on Amazon Bedrock with a hard timeout and a single
attempt, and turns every failure into a classified GatewayError. Also offers a
lightweight connectivity probe that never raises.
"""

import json
import re
import time
from dataclasses import dataclass
from typing import Optional, Union

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, ConnectTimeoutError, ReadTimeoutError

from config_validator import GatewaySettings
from logging_config import get_logger, log_model_call

from .errors import (
    FailureKind,
    GatewayError,
    ModelTimeoutError,
    RateLimitedError,
    UpstreamError,
)
from .prompt_builder import PromptPayload

logger = get_logger(__name__)

RATE_LIMIT_ERROR_CODES = {
    "ThrottlingException",
    "TooManyRequestsException",
    "ServiceQuotaExceededException",
}
RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "quota exceeded", "too many requests", "throttl")
_STATUS_429_RE = re.compile(r"\b429\b")

PROBE_SYSTEM = "You are a connectivity check. Reply with the single word OK."
PROBE_PROMPT = "ping"
PROBE_MAX_TOKENS = 5

_ERRORS_BY_KIND = {
    FailureKind.TIMEOUT: ModelTimeoutError,
    FailureKind.RATE_LIMITED: RateLimitedError,
    FailureKind.UPSTREAM: UpstreamError,
}


def classify_failure(raw_error: Union[BaseException, str]) -> FailureKind:
    """
    Map a raw backend error (exception or error text) to a FailureKind.

    Timeouts are recognized by type. Rate limiting is recognized by Bedrock
    throttling error codes, HTTP 429 (as a status, or as a standalone number
    in the message), or rate-limit wording in the message.
    Anything else is an upstream failure.
    """
    if isinstance(raw_error, GatewayError):
        return raw_error.kind

    if isinstance(raw_error, (ReadTimeoutError, ConnectTimeoutError, TimeoutError)):
        return FailureKind.TIMEOUT

    if isinstance(raw_error, ClientError):
        error = raw_error.response.get("Error", {})
        status = raw_error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if error.get("Code") in RATE_LIMIT_ERROR_CODES or status == 429:
            return FailureKind.RATE_LIMITED

    text = str(raw_error).lower()
    if _STATUS_429_RE.search(text) or any(marker in text for marker in RATE_LIMIT_MARKERS):
        return FailureKind.RATE_LIMITED

    return FailureKind.UPSTREAM


def as_gateway_error(raw_error: BaseException) -> GatewayError:
    if isinstance(raw_error, GatewayError):
        return raw_error
    message = str(raw_error) or type(raw_error).__name__
    return _ERRORS_BY_KIND[classify_failure(raw_error)](message)


@dataclass(frozen=True)
class ProbeResult:
    success: bool
    message: str
    failure_kind: Optional[FailureKind] = None


class ModelGateway:
    """
    Single-attempt client for one model id / API version pair.

    Retries are left to the caller: botocore's own retry loop is disabled so
    that the configured timeout bounds the whole call.
    """

    def __init__(
        self,
        model_id: str,
        api_version: str,
        region: str = "us-east-1",
        timeout_seconds: float = 30.0,
        max_tokens: int = 1024,
        temperature: float = 0.2,
    ):
        self.model_id = model_id
        self.api_version = api_version
        self.region = region
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.temperature = temperature

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> "ModelGateway":
        return cls(
            model_id=settings.model_id,
            api_version=settings.api_version,
            region=settings.region,
            timeout_seconds=settings.timeout_seconds,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )

    def _get_client(self):
        config = Config(
            connect_timeout=self.timeout_seconds,
            read_timeout=self.timeout_seconds,
            retries={"total_max_attempts": 1, "mode": "standard"},
        )
        return boto3.client("bedrock-runtime", region_name=self.region, config=config)

    def _invoke_model(self, system: str, user: str, max_tokens: int) -> str:
        body = {
            "anthropic_version": self.api_version,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "system": [{"type": "text", "text": system}],
            "messages": [
                {"role": "user", "content": [{"type": "text", "text": user}]}
            ],
        }

        response = self._get_client().invoke_model(
            modelId=self.model_id,
            body=json.dumps(body),
            accept="application/json",
            contentType="application/json",
        )

        payload = json.loads(response["body"].read())
        if payload.get("type") == "error":
            error = payload.get("error") or {}
            message = f"{error.get('type', 'error')}: {error.get('message', '')}"
            raise _ERRORS_BY_KIND[classify_failure(message)](message)

        text_parts = [
            part.get("text", "")
            for part in payload.get("content", [])
            if part.get("type") == "text"
        ]
        return "".join(text_parts).strip()

    def _log_extra(self, **fields) -> dict:
        extra = {"model_id": self.model_id, "api_version": self.api_version}
        extra.update(fields)
        return extra

    def invoke(self, payload: PromptPayload) -> str:
        """
        Send the prompt and return the backend's raw text.

        Raises:
            ModelTimeoutError: connect or read timeout
            RateLimitedError: throttling, quota or HTTP 429
            UpstreamError: any other backend or transport failure
        """
        start_time = time.time()
        try:
            text = self._invoke_model(payload.system, payload.user, self.max_tokens)
        except Exception as e:
            error = as_gateway_error(e)
            log_model_call(
                logger,
                operation="invoke",
                success=False,
                duration_ms=(time.time() - start_time) * 1000,
                error=e,
                extra=self._log_extra(failure_kind=error.kind.value),
            )
            if error is e:
                raise
            raise error from e

        log_model_call(
            logger,
            operation="invoke",
            success=True,
            duration_ms=(time.time() - start_time) * 1000,
            extra=self._log_extra(response_chars=len(text)),
        )
        return text

    def probe(self) -> ProbeResult:
        """
        Check that the backend answers for this model id / API version.
        Never raises; the outcome is reported in the ProbeResult.
        """
        start_time = time.time()
        try:
            self._invoke_model(PROBE_SYSTEM, PROBE_PROMPT, PROBE_MAX_TOKENS)
        except Exception as e:
            error = as_gateway_error(e)
            log_model_call(
                logger,
                operation="probe",
                success=False,
                duration_ms=(time.time() - start_time) * 1000,
                error=e,
                extra=self._log_extra(failure_kind=error.kind.value),
            )
            return ProbeResult(success=False, message=str(error), failure_kind=error.kind)

        log_model_call(
            logger,
            operation="probe",
            success=True,
            duration_ms=(time.time() - start_time) * 1000,
            extra=self._log_extra(),
        )
        return ProbeResult(success=True, message="Model API is accessible")
