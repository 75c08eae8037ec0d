"""
HTTP-level tests for the advisory, health and model connection endpoints.
"""
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, ReadTimeoutError
from fastapi.testclient import TestClient

import main
from advisory.fallback import RATE_LIMITED_ANSWER, UNAVAILABLE_ANSWER
from config_validator import GatewaySettings

ADVISORY_FIELDS = {
    "answer", "isEmergency", "riskLevel", "recommendations",
    "preventiveAdvice", "followUpQuestions",
}


def _throttled():
    return ClientError(
        {"Error": {"Code": "ThrottlingException", "Message": "Too many requests"},
         "ResponseMetadata": {"HTTPStatusCode": 429}},
        "InvokeModel",
    )


def _assert_timestamp(body):
    datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00"))


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main, "gateway_settings", GatewaySettings())
    return TestClient(main.app)


class TestAdvisoryEndpoint:
    """POST /api/ai"""

    @patch('advisory.model_gateway.boto3.client')
    def test_empty_query_is_rejected_without_backend_call(self, mock_boto_client, client):
        response = client.post("/api/ai", json={"query": ""})

        assert response.status_code == 400
        body = response.json()
        assert "query" in body["error"]
        _assert_timestamp(body)
        mock_boto_client.assert_not_called()

    @pytest.mark.parametrize("payload", [{}, {"query": 42}, {"query": None}, ["query"]])
    @patch('advisory.model_gateway.boto3.client')
    def test_malformed_requests(self, mock_boto_client, client, payload):
        response = client.post("/api/ai", json=payload)

        assert response.status_code == 400
        assert "error" in response.json()
        mock_boto_client.assert_not_called()

    def test_invalid_json_body(self, client):
        response = client.post(
            "/api/ai", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert "error" in response.json()

    @patch('advisory.model_gateway.boto3.client')
    def test_low_risk_answer(self, mock_boto_client, client, bedrock_reply, advisory_json):
        mock_boto_client.return_value.invoke_model.return_value = bedrock_reply(advisory_json())

        response = client.post("/api/ai", json={
            "query": "I have mild ankle pain after running",
            "profile": {"age": 34, "sex": "female"},
            "symptoms": [{"type": "ankle pain", "severity": "mild", "duration": "2 days"}],
            "messageHistory": [{"role": "user", "content": "Hi"}],
        })

        assert response.status_code == 200
        body = response.json()
        assert set(body) == ADVISORY_FIELDS | {"timestamp"}
        assert body["riskLevel"] == "low"
        assert body["isEmergency"] is False
        assert body["answer"] == "Rest the ankle, apply ice and keep it elevated."
        assert body["preventiveAdvice"] == ["Warm up before running"]
        _assert_timestamp(body)

    @patch('advisory.model_gateway.boto3.client')
    def test_emergency_query_is_escalated(self, mock_boto_client, client, bedrock_reply, advisory_json):
        mock_boto_client.return_value.invoke_model.return_value = bedrock_reply(
            advisory_json(answer="Please sit down and rest.", riskLevel="moderate")
        )

        response = client.post("/api/ai", json={"query": "I have chest pain and can't breathe"})

        assert response.status_code == 200
        body = response.json()
        assert body["isEmergency"] is True
        assert body["riskLevel"] == "emergency"

    @patch('advisory.model_gateway.boto3.client')
    def test_prose_reply_is_returned_as_plain_answer(self, mock_boto_client, client, bedrock_reply):
        mock_boto_client.return_value.invoke_model.return_value = bedrock_reply(
            "Staying hydrated helps with headaches."
        )

        body = client.post("/api/ai", json={"query": "Why do I get headaches?"}).json()

        assert body["answer"] == "Staying hydrated helps with headaches."
        assert body["recommendations"] == []
        assert body["riskLevel"] == "low"

    @patch('advisory.model_gateway.boto3.client')
    def test_rate_limited_backend_returns_fallback(self, mock_boto_client, client):
        mock_boto_client.return_value.invoke_model.side_effect = _throttled()

        response = client.post("/api/ai", json={"query": "Is coffee bad for my heart?"})

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Failed to generate AI response"
        assert body["isRateLimit"] is True
        assert body["fallbackResponse"]["answer"] == RATE_LIMITED_ANSWER
        assert body["fallbackResponse"]["isEmergency"] is False
        assert body["fallbackResponse"]["riskLevel"] == "low"
        assert set(body["fallbackResponse"]) == ADVISORY_FIELDS
        _assert_timestamp(body)

    @patch('advisory.model_gateway.boto3.client')
    def test_timeout_returns_generic_fallback(self, mock_boto_client, client):
        mock_boto_client.return_value.invoke_model.side_effect = ReadTimeoutError(
            endpoint_url="https://bedrock-runtime.us-east-1.amazonaws.com"
        )

        body = client.post("/api/ai", json={"query": "Is coffee bad for my heart?"}).json()

        assert body["isRateLimit"] is False
        assert body["fallbackResponse"]["answer"] == UNAVAILABLE_ANSWER

    @patch('advisory.model_gateway.boto3.client')
    def test_empty_backend_reply_returns_fallback(self, mock_boto_client, client, bedrock_reply):
        mock_boto_client.return_value.invoke_model.return_value = bedrock_reply("")

        response = client.post("/api/ai", json={"query": "Is coffee bad for my heart?"})

        assert response.status_code == 500
        assert response.json()["fallbackResponse"]["answer"] == UNAVAILABLE_ANSWER

    def test_unexpected_error_returns_fallback(self, client):
        with patch('main.get_health_assistant_response', side_effect=RuntimeError("boom")):
            response = client.post("/api/ai", json={"query": "hello"})

        assert response.status_code == 500
        body = response.json()
        assert body["details"] == "boom"
        assert body["isRateLimit"] is False
        assert body["fallbackResponse"]["answer"] == UNAVAILABLE_ANSWER


class TestHealthEndpoint:
    """GET /api/ai/health"""

    @patch('advisory.model_gateway.boto3.client')
    def test_healthy(self, mock_boto_client, client, bedrock_reply):
        mock_boto_client.return_value.invoke_model.return_value = bedrock_reply("OK")

        response = client.get("/api/ai/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["gemini"]["status"] == "connected"
        assert body["gemini"]["model"] == "anthropic.claude-3-haiku-20240307-v1:0"
        assert body["gemini"]["apiVersion"] == "bedrock-2023-05-31"
        _assert_timestamp(body)

    @patch('advisory.model_gateway.boto3.client')
    def test_backend_error_is_degraded(self, mock_boto_client, client):
        mock_boto_client.return_value.invoke_model.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "not authorized"},
             "ResponseMetadata": {"HTTPStatusCode": 403}},
            "InvokeModel",
        )

        response = client.get("/api/ai/health")

        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "degraded"
        assert body["gemini"]["status"] == "error"
        assert "not authorized" in body["gemini"]["message"]

    @patch('advisory.model_gateway.boto3.client')
    def test_rate_limited(self, mock_boto_client, client):
        mock_boto_client.return_value.invoke_model.side_effect = _throttled()

        response = client.get("/api/ai/health")

        assert response.status_code == 429
        assert response.headers["retry-after"] == "60"
        body = response.json()
        assert body["status"] == "degraded"
        assert body["gemini"]["status"] == "rate_limited"
        assert body["fallback"]["status"] == "active"

    def test_unexpected_error(self, client):
        with patch('main.get_model_gateway', side_effect=RuntimeError("no settings")):
            response = client.get("/api/ai/health")

        assert response.status_code == 500
        assert response.json()["status"] == "error"


class TestModelConnectionEndpoint:
    """GET /api/test-connection/model"""

    @patch('advisory.model_gateway.boto3.client')
    def test_probes_requested_model_and_version(self, mock_boto_client, client, bedrock_reply):
        mock_bedrock = MagicMock()
        mock_boto_client.return_value = mock_bedrock
        mock_bedrock.invoke_model.return_value = bedrock_reply("OK")

        response = client.get("/api/test-connection/model", params={"model": "custom-model", "version": "v9"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["model"] == "custom-model"
        assert body["version"] == "v9"
        assert mock_bedrock.invoke_model.call_args.kwargs["modelId"] == "custom-model"

    @patch('advisory.model_gateway.boto3.client')
    def test_defaults_to_configured_model(self, mock_boto_client, client, bedrock_reply):
        mock_boto_client.return_value.invoke_model.return_value = bedrock_reply("OK")

        body = client.get("/api/test-connection/model").json()

        assert body["model"] == "anthropic.claude-3-haiku-20240307-v1:0"
        assert body["version"] == "bedrock-2023-05-31"

    @patch('advisory.model_gateway.boto3.client')
    def test_failure(self, mock_boto_client, client):
        mock_boto_client.return_value.invoke_model.side_effect = _throttled()

        response = client.get("/api/test-connection/model")

        assert response.status_code == 429
        assert response.json()["success"] is False


class TestGatewaySettingsLifetime:
    """Gateway settings are read at startup, not per request"""

    @patch('advisory.model_gateway.boto3.client')
    def test_requests_do_not_reload_settings(self, mock_boto_client, client, bedrock_reply):
        mock_boto_client.return_value.invoke_model.return_value = bedrock_reply("OK")

        with patch('main.load_gateway_settings') as mock_load, \
                patch('config_validator.load_dotenv') as mock_dotenv:
            client.post("/api/ai", json={"query": ""})
            client.get("/api/ai/health")

        mock_load.assert_not_called()
        mock_dotenv.assert_not_called()

    @patch('advisory.model_gateway.boto3.client')
    def test_routes_use_startup_settings(self, mock_boto_client, client, monkeypatch, bedrock_reply):
        mock_bedrock = MagicMock()
        mock_boto_client.return_value = mock_bedrock
        mock_bedrock.invoke_model.return_value = bedrock_reply("OK")
        monkeypatch.setattr(main, "gateway_settings", GatewaySettings(model_id="startup-model", region="eu-west-1"))

        body = client.get("/api/ai/health").json()

        assert body["gemini"]["model"] == "startup-model"
        assert mock_boto_client.call_args.kwargs["region_name"] == "eu-west-1"
