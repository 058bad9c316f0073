"""
Tests for the AWS Lambda adapter
"""

import json
from types import SimpleNamespace

import lambda_handler


def make_context():
    return SimpleNamespace(function_name="identity-reconciliation", aws_request_id="req-123")


def test_describe_api_gateway_v2_event():
    event = {
        "version": "2.0",
        "requestContext": {"http": {"method": "POST", "path": "/identify"}},
    }

    assert lambda_handler.describe_event(event) == "API Gateway v2: POST /identify"


def test_describe_api_gateway_v1_event():
    event = {"httpMethod": "GET", "path": "/health"}

    assert lambda_handler.describe_event(event) == "API Gateway v1: GET /health"


def test_describe_unknown_event():
    assert lambda_handler.describe_event({"b": 1, "a": 2}) == "Unknown event format with keys ['a', 'b']"


def test_adapter_failure_returns_api_gateway_500(monkeypatch):
    def broken_handler(event, context):
        raise RuntimeError("adapter exploded")

    monkeypatch.setattr(lambda_handler, "handler", broken_handler)

    response = lambda_handler.lambda_handler({"httpMethod": "POST", "path": "/identify"}, make_context())

    assert response["statusCode"] == 500
    body = json.loads(response["body"])
    assert body["error"] == "InternalServerError"
    assert body["requestId"] == "req-123"


def test_adapter_response_is_passed_through(monkeypatch):
    expected = {"statusCode": 200, "headers": {}, "body": "{}"}
    monkeypatch.setattr(lambda_handler, "handler", lambda event, context: expected)

    assert lambda_handler.lambda_handler({"version": "2.0"}, make_context()) is expected
