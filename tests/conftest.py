"""
Shared fixtures for simulating Bedrock invoke_model responses.
"""
import json
from unittest.mock import MagicMock

import pytest


def _bedrock_reply(text):
    payload = json.dumps({
        "content": [{"type": "text", "text": text}],
        "stop_reason": "end_turn",
    })
    return {'body': MagicMock(read=lambda: payload)}


def _advisory_json(**overrides):
    data = {
        "answer": "Rest the ankle, apply ice and keep it elevated.",
        "isEmergency": False,
        "riskLevel": "low",
        "recommendations": ["Rest for 48 hours", "Apply ice for 15 minutes at a time"],
        "preventiveAdvice": ["Warm up before running"],
        "followUpQuestions": ["Is there any swelling?"],
    }
    data.update(overrides)
    return json.dumps(data)


@pytest.fixture
def bedrock_reply():
    """Factory: text -> invoke_model return value carrying that text."""
    return _bedrock_reply


@pytest.fixture
def advisory_json():
    """Factory: field overrides -> well-formed advisory JSON string."""
    return _advisory_json


@pytest.fixture
def gateway_env(monkeypatch):
    """Pin the gateway configuration regardless of the host environment."""
    monkeypatch.delenv("BEDROCK_INFERENCE_PROFILE_ARN", raising=False)
    monkeypatch.setenv("BEDROCK_MODEL", "anthropic.claude-3-haiku-20240307-v1:0")
    monkeypatch.setenv("BEDROCK_API_VERSION", "bedrock-2023-05-31")
    monkeypatch.setenv("BEDROCK_REGION", "us-east-1")
    monkeypatch.delenv("MODEL_TIMEOUT_SECONDS", raising=False)
    monkeypatch.delenv("MODEL_MAX_TOKENS", raising=False)
    monkeypatch.delenv("MODEL_TEMPERATURE", raising=False)
