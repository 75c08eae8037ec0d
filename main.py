# main.py
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import Body, FastAPI, Request as FastAPIRequest
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from advisory import (
    AdvisoryError,
    FailureKind,
    ModelGateway,
    QueryValidationError,
    build_fallback_response,
    classify_failure,
    get_health_assistant_response,
)
from config_validator import load_gateway_settings, log_validation_results, validate_all_configurations
from logging_config import (
    setup_logging,
    get_logger,
    get_request_logger,
    log_error,
    log_request_start,
    log_request_end
)

load_dotenv()
setup_logging()
logger = get_logger(__name__)

app = FastAPI(title="Health Advisory API", version="1.0.0")

logger.info("Health Advisory API starting up")

_config_valid, _config_results = validate_all_configurations()
log_validation_results(_config_results)

# Read once at startup; .env was loaded above
gateway_settings = load_gateway_settings(dict(os.environ))

RETRY_AFTER_SECONDS = "60"


def get_cors_origins():
    """
    Get allowed CORS origins from environment variable.
    In production, wildcard is not allowed.
    """
    allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "")
    environment = os.getenv("ENVIRONMENT", "development").lower()

    logger.info(f"Configuring CORS for environment: {environment}")

    if allowed_origins_env:
        origins = [origin.strip() for origin in allowed_origins_env.split(",") if origin.strip()]

        if environment == "production" and "*" in origins:
            error_msg = "Wildcard '*' is not allowed in ALLOWED_ORIGINS for production environment"
            logger.error(error_msg)
            raise ValueError(error_msg)

        logger.info(f"CORS origins configured: {origins}")
        return origins

    if environment == "production":
        error_msg = "ALLOWED_ORIGINS must be explicitly set in production environment"
        logger.error(error_msg)
        raise ValueError(error_msg)
    logger.info("CORS origins: wildcard (development mode)")
    return ["*"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def get_model_gateway(model_id: Optional[str] = None, api_version: Optional[str] = None) -> ModelGateway:
    gateway = ModelGateway.from_settings(gateway_settings)
    if model_id:
        gateway.model_id = model_id
    if api_version:
        gateway.api_version = api_version
    return gateway


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "timestamp": utc_timestamp()}
    )


@app.middleware("http")
async def log_requests(request: FastAPIRequest, call_next):
    """
    Log every HTTP request with a request id and its duration.
    """
    request_id = str(uuid.uuid4())
    start_time = time.time()

    log_request_start(
        logger,
        endpoint=request.url.path,
        extra={
            'request_id': request_id,
            'method': request.method,
            'client_host': request.client.host if request.client else None
        }
    )

    try:
        response = await call_next(request)
    except Exception as e:
        log_error(
            logger,
            e,
            f"Request failed: {request.url.path}",
            extra={
                'request_id': request_id,
                'method': request.method,
                'duration_ms': (time.time() - start_time) * 1000
            }
        )
        return error_response(500, "Internal server error")

    log_request_end(
        logger,
        endpoint=request.url.path,
        status_code=response.status_code,
        duration_ms=(time.time() - start_time) * 1000,
        extra={
            'request_id': request_id,
            'method': request.method
        }
    )
    return response


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: FastAPIRequest, exc: RequestValidationError):
    return error_response(400, "Invalid request: body must be valid JSON")


def _failure_response(error: Exception) -> JSONResponse:
    kind = error.kind if isinstance(error, AdvisoryError) else classify_failure(error)
    fallback = build_fallback_response(kind)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Failed to generate AI response",
            "details": str(error) or type(error).__name__,
            "isRateLimit": kind == FailureKind.RATE_LIMITED,
            "fallbackResponse": fallback.to_wire(),
            "timestamp": utc_timestamp(),
        }
    )


@app.post("/api/ai")
def ai_query(body: Any = Body(None)):
    """Answer a health question with a structured advisory."""
    request_logger = get_request_logger(__name__, endpoint="/api/ai")

    if not isinstance(body, dict):
        return error_response(400, "Invalid request: body must be a JSON object")

    request_logger.info("Advisory request received", extra={
        'extra_fields': {
            'has_profile': bool(body.get("profile")),
            'has_metrics': bool(body.get("metrics")),
            'has_symptoms': isinstance(body.get("symptoms"), list),
            'has_medical_reports': isinstance(body.get("medicalReports"), list),
            'has_message_history': isinstance(body.get("messageHistory"), list),
        }
    })

    try:
        response = get_health_assistant_response(
            query=body.get("query"),
            profile=body.get("profile"),
            metrics=body.get("metrics"),
            symptoms=body.get("symptoms"),
            medical_reports=body.get("medicalReports"),
            message_history=body.get("messageHistory"),
            gateway=get_model_gateway(),
        )
    except QueryValidationError as e:
        request_logger.warning(f"Rejected advisory request: {e}")
        return error_response(400, str(e))
    except AdvisoryError as e:
        log_error(request_logger, e, "Advisory generation failed, returning fallback",
                  {'failure_kind': e.kind.value})
        return _failure_response(e)
    except Exception as e:
        log_error(request_logger, e, "Unexpected error generating advisory, returning fallback")
        return _failure_response(e)

    return {**response.to_wire(), "timestamp": utc_timestamp()}


@app.get("/api/ai/health")
def ai_health():
    """Report whether the generative backend is reachable."""
    request_logger = get_request_logger(__name__, endpoint="/api/ai/health")

    try:
        gateway = get_model_gateway()
        result = gateway.probe()
    except Exception as e:
        log_error(request_logger, e, "Health check failed")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "error": str(e), "timestamp": utc_timestamp()}
        )

    if result.success:
        return {
            "status": "healthy",
            # Wire name kept for the existing UI client.
            "gemini": {
                "status": "connected",
                "model": gateway.model_id,
                "apiVersion": gateway.api_version,
                "message": result.message,
            },
            "timestamp": utc_timestamp(),
        }

    if result.failure_kind == FailureKind.RATE_LIMITED:
        request_logger.warning("Health check: model API rate limited")
        return JSONResponse(
            status_code=429,
            headers={"Retry-After": RETRY_AFTER_SECONDS},
            content={
                "status": "degraded",
                "gemini": {
                    "status": "rate_limited",
                    "model": gateway.model_id,
                    "message": "Model API is temporarily rate limited. The application will use fallback responses.",
                    "retryAfter": RETRY_AFTER_SECONDS,
                },
                "fallback": {
                    "status": "active",
                    "message": "Using local response system",
                },
                "timestamp": utc_timestamp(),
            }
        )

    request_logger.warning(f"Health check: model API unavailable: {result.message}")
    return JSONResponse(
        status_code=500,
        content={
            "status": "degraded",
            "gemini": {
                "status": "error",
                "model": gateway.model_id,
                "apiVersion": gateway.api_version,
                "message": result.message,
            },
            "timestamp": utc_timestamp(),
        }
    )


@app.get("/api/test-connection/model")
def test_model_connection(model: Optional[str] = None, version: Optional[str] = None):
    """Probe a caller-chosen model id / API version."""
    gateway = get_model_gateway(model_id=model, api_version=version)
    result = gateway.probe()

    content = {
        "success": result.success,
        "message": result.message,
        "model": gateway.model_id,
        "version": gateway.api_version,
        "timestamp": utc_timestamp(),
    }
    if result.success:
        return content
    if result.failure_kind == FailureKind.RATE_LIMITED:
        return JSONResponse(status_code=429, headers={"Retry-After": RETRY_AFTER_SECONDS}, content=content)
    return JSONResponse(status_code=500, content=content)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
    )
