"""Comprehensive tests for the AWS Lambda proxy adapter.

These tests verify the request/response cycle, the fallback responses
returned on conversion failures, and the Lambda-facing entrypoint.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from core.errors import (
    DecodeError,
    ProxyError,
    RequestBuildError,
    ResponseConversionError,
    UnsupportedEventTypeError,
)
from core.events import (
    ALBTargetGroupRequest,
    ALBTargetGroupResponse,
    APIGatewayProxyRequest,
    APIGatewayProxyResponse,
)
from core.request import RequestAccessor
from server.adapters.aws_lambda import LambdaProxyAdapter


class MockLambdaContext:
    """Mock Lambda context object."""

    def __init__(self, request_id="test-request-id-123"):
        self.aws_request_id = request_id
        self.function_name = "test-function"
        self.memory_limit_in_mb = 512


def respond(status, body, headers=None):
    """Build a handler writing a fixed response."""
    calls = []

    def handler(writer, request):
        calls.append(request)
        for key, value in (headers or {}).items():
            writer.headers[key] = value
        writer.write_header(status)
        writer.write(body)

    handler.calls = calls
    return handler


def gateway_event_dict(**overrides):
    data = {
        "httpMethod": "GET",
        "path": "/items",
        "queryStringParameters": {"q": "shoes"},
        "headers": {"Accept": "text/plain"},
        "requestContext": {"stage": "prod", "requestId": "r-1"},
        "stageVariables": {"k": "v"},
        "body": None,
        "isBase64Encoded": False,
    }
    data.update(overrides)
    return data


def alb_event_dict(**overrides):
    data = {
        "httpMethod": "GET",
        "path": "/lambda",
        "headers": {"accept": "text/plain"},
        "requestContext": {"elb": {"targetGroupArn": "arn:aws:tg"}},
        "body": "",
        "isBase64Encoded": False,
    }
    data.update(overrides)
    return data


class TestProxy:
    """Test the request/response cycle."""

    def test_gateway_end_to_end(self):
        """Test GET /items?q=shoes answered with 201 'ok'."""
        handler = respond(201, "ok")
        adapter = LambdaProxyAdapter(handler)
        event = APIGatewayProxyRequest.model_validate(gateway_event_dict())

        response, error = adapter.proxy(event)

        assert error is None
        assert isinstance(response, APIGatewayProxyResponse)
        assert response.status_code == 201
        assert response.body == "ok"
        assert response.is_base64_encoded is False

        request = handler.calls[0]
        assert request.method == "GET"
        assert request.url.path == "/items"
        assert request.url.params["q"] == "shoes"
        assert request.content == b""

    def test_handler_can_read_platform_data(self):
        """Test that the handler recovers context and stage variables."""
        accessor = RequestAccessor()
        seen = {}

        def handler(writer, request):
            seen["context"] = accessor.get_invocation_context(request)
            seen["stage_vars"] = accessor.get_stage_variables(request)
            writer.write("ok")

        adapter = LambdaProxyAdapter(handler, accessor)
        adapter.proxy(APIGatewayProxyRequest.model_validate(gateway_event_dict()))

        assert seen["context"].stage == "prod"
        assert seen["context"].request_id == "r-1"
        assert seen["stage_vars"] == {"k": "v"}

    def test_alb_end_to_end(self):
        handler = respond(404, "missing", headers={"Content-Type": "text/plain"})
        adapter = LambdaProxyAdapter(handler)
        event = ALBTargetGroupRequest.model_validate(alb_event_dict())

        response, error = adapter.proxy(event)

        assert error is None
        assert isinstance(response, ALBTargetGroupResponse)
        assert response.status_code == 404
        assert response.status_description == "404 Not Found"
        assert response.body == "missing"

    def test_strip_base_path_applies_to_requests(self):
        handler = respond(200, "ok")
        adapter = LambdaProxyAdapter(handler)
        assert adapter.strip_base_path("api/") == "/api"

        adapter.proxy(APIGatewayProxyRequest.model_validate(gateway_event_dict(path="/api/users/5")))

        assert handler.calls[0].url.path == "/users/5"

    def test_gateway_conversion_failure_returns_timeout(self):
        """Test that a bad event body yields a 504 and the logged error."""
        handler = MagicMock()
        adapter = LambdaProxyAdapter(handler)
        event = APIGatewayProxyRequest.model_validate(
            gateway_event_dict(body="***", isBase64Encoded=True)
        )

        response, error = adapter.proxy(event)

        assert isinstance(response, APIGatewayProxyResponse)
        assert response.status_code == 504
        assert isinstance(error, ProxyError)
        assert isinstance(error.__cause__, DecodeError)
        handler.assert_not_called()

    def test_alb_conversion_failure_returns_alb_timeout(self):
        handler = MagicMock()
        adapter = LambdaProxyAdapter(handler, RequestAccessor(host="no-scheme"))

        response, error = adapter.proxy(ALBTargetGroupRequest.model_validate(alb_event_dict()))

        assert isinstance(response, ALBTargetGroupResponse)
        assert response.status_code == 504
        assert isinstance(error.__cause__, RequestBuildError)
        handler.assert_not_called()

    def test_unsupported_event_returns_timeout(self):
        adapter = LambdaProxyAdapter(MagicMock())

        response, error = adapter.proxy({"httpMethod": "GET"})

        assert response.status_code == 504
        assert isinstance(error.__cause__, UnsupportedEventTypeError)

    def test_response_conversion_failure_returns_timeout(self):
        adapter = LambdaProxyAdapter(respond(1000, "bad status"))

        response, error = adapter.proxy(APIGatewayProxyRequest.model_validate(gateway_event_dict()))

        assert response.status_code == 504
        assert isinstance(error.__cause__, ResponseConversionError)

    def test_error_is_logged(self):
        adapter = LambdaProxyAdapter(MagicMock())
        event = APIGatewayProxyRequest.model_validate(
            gateway_event_dict(body="***", isBase64Encoded=True)
        )

        with patch("core.logging_utils.logger") as mock_logger:
            adapter.proxy(event)

        mock_logger.error.assert_called_once()
        message = mock_logger.error.call_args[0][0]
        assert message.startswith("Could not convert proxy event to request")


class TestLambdaCall:
    """Test the Lambda-facing __call__ entrypoint."""

    def test_returns_gateway_response_dict(self):
        adapter = LambdaProxyAdapter(respond(200, json.dumps({"ok": True}), {"Content-Type": "application/json"}))

        response = adapter(gateway_event_dict(), MockLambdaContext())

        assert response["statusCode"] == 200
        assert response["headers"]["Content-Type"] == "application/json"
        assert json.loads(response["body"]) == {"ok": True}
        assert response["isBase64Encoded"] is False

    def test_returns_alb_response_dict(self):
        adapter = LambdaProxyAdapter(respond(200, "ok"))

        response = adapter(alb_event_dict(), MockLambdaContext())

        assert response["statusDescription"] == "200 OK"
        assert response["body"] == "ok"

    def test_handles_missing_context(self):
        adapter = LambdaProxyAdapter(respond(200, "ok"))

        response = adapter(gateway_event_dict(), None)

        assert response["statusCode"] == 200

    def test_unrecognised_event_returns_timeout(self):
        adapter = LambdaProxyAdapter(MagicMock())

        response = adapter({"version": "2.0", "rawPath": "/"}, MockLambdaContext())

        assert response["statusCode"] == 504

    @pytest.mark.parametrize(
        "event, expected_keys",
        [
            (gateway_event_dict(), {"statusCode", "headers", "multiValueHeaders", "body", "isBase64Encoded"}),
            (alb_event_dict(), {"statusCode", "statusDescription", "headers", "multiValueHeaders", "body", "isBase64Encoded"}),
        ],
    )
    def test_handler_exception_returns_500(self, event, expected_keys):
        """Test that an exception from the handler becomes a 500 response."""
        handler = MagicMock(side_effect=RuntimeError("boom"))
        adapter = LambdaProxyAdapter(handler)

        response = adapter(event, MockLambdaContext())

        assert response["statusCode"] == 500
        assert response["body"] == "Internal Server Error"
        assert set(response) == expected_keys
