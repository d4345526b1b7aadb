"""AWS Lambda proxy adapter.

Runs one request/response cycle per invocation: the Lambda event becomes an
``httpx.Request``, the HTTP handler writes its response into a
``ProxyResponseWriter``, and the recorded response becomes the response shape
API Gateway or the ALB target group expects.
"""

import logging
import time
from typing import Any, Dict, Optional, Protocol, Tuple

import httpx

from core.errors import AdapterError, ProxyError, ResponseConversionError
from core.events import (
    ALBTargetGroupRequest,
    ALBTargetGroupResponse,
    APIGatewayProxyResponse,
    PlatformEvent,
    PlatformResponse,
    parse_event,
)
from core.logging_utils import format_request_log, format_response_log, new_logged_error
from core.request import RequestAccessor
from core.response import ProxyResponseWriter, alb_gateway_timeout, gateway_timeout


class LambdaContext(Protocol):
    """Protocol for AWS Lambda context object.

    This defines the expected interface for Lambda context objects,
    which provide runtime information about the Lambda execution environment.
    """

    aws_request_id: str
    function_name: Optional[str]
    memory_limit_in_mb: Optional[int]


class RequestHandler(Protocol):
    """An HTTP handler writing its response into a ``ProxyResponseWriter``."""

    def __call__(self, writer: ProxyResponseWriter, request: httpx.Request) -> None:
        ...


logger = logging.getLogger(__name__)


def _timeout_response(event: Any) -> PlatformResponse:
    if isinstance(event, ALBTargetGroupRequest):
        return alb_gateway_timeout()
    return gateway_timeout()


class LambdaProxyAdapter:
    """Proxies Lambda events to an HTTP handler owned by the caller.

    The adapter holds no per-request state. Its ``accessor`` carries the base
    path configuration shared by all invocations.
    """

    def __init__(self, handler: RequestHandler, accessor: Optional[RequestAccessor] = None) -> None:
        """Initialize the adapter.

        Args:
            handler: HTTP handler receiving ``(writer, request)``
            accessor: Request accessor, a default one is created when omitted
        """
        self.handler = handler
        self.accessor = accessor or RequestAccessor()

    def strip_base_path(self, base_path: str) -> str:
        """Set the base path removed from request paths before routing."""
        return self.accessor.strip_base_path(base_path)

    def proxy(self, event: PlatformEvent) -> Tuple[PlatformResponse, Optional[ProxyError]]:
        """Run one request/response cycle for ``event``.

        Failures are not raised: a 504 response shaped for the event variant
        is returned together with the logged error.

        Args:
            event: Parsed API Gateway or ALB target group event

        Returns:
            Tuple of (response, error). ``error`` is None on success.
        """
        # Lambda event -> HTTP request
        try:
            request = self.accessor.proxy_event_to_http_request(event)
        except AdapterError as e:
            return _timeout_response(event), new_logged_error(
                f"Could not convert proxy event to request: {e}", e
            )

        # HTTP request -> handler
        writer = ProxyResponseWriter()
        self.handler(writer, request)

        # HTTP response -> Lambda response
        try:
            if isinstance(event, ALBTargetGroupRequest):
                return writer.get_alb_response(), None
            return writer.get_proxy_response(), None
        except ResponseConversionError as e:
            return _timeout_response(event), new_logged_error(
                f"Error while generating proxy response: {e}", e
            )

    def __call__(self, event: Dict[str, Any], context: Optional[LambdaContext]) -> Dict[str, Any]:
        """AWS Lambda handler function.

        Args:
            event: Raw Lambda event (API Gateway proxy or ALB target group)
            context: Lambda context object

        Returns:
            Response dictionary in the shape of the event's integration
        """
        start_time = time.perf_counter()
        request_id = context.aws_request_id if context else "unknown"

        try:
            parsed = parse_event(event)
        except AdapterError as e:
            new_logged_error(f"Could not parse Lambda event: {e}", e)
            return gateway_timeout().to_lambda()

        logger.info(
            "Lambda invocation started",
            extra=format_request_log(
                request_id=request_id,
                http_method=parsed.http_method,
                request_path=parsed.path,
                headers=parsed.headers or {},
                body_size=len(parsed.body or ""),
                lambda_context=context,
            ),
        )

        try:
            response, error = self.proxy(parsed)
        except Exception as e:
            logger.error(
                f"Error in HTTP handler: {e}",
                extra={"request_id": request_id, "error_type": type(e).__name__},
                exc_info=True,
            )
            return _internal_error(parsed).to_lambda()

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Lambda invocation completed",
            extra=format_response_log(
                request_id=request_id,
                status_code=response.status_code,
                headers=response.headers,
                is_base64_encoded=response.is_base64_encoded,
                duration_ms=duration_ms,
                success=error is None,
            ),
        )
        return response.to_lambda()


def _internal_error(event: PlatformEvent) -> PlatformResponse:
    headers = {"Content-Type": "text/plain; charset=utf-8"}
    if isinstance(event, ALBTargetGroupRequest):
        return ALBTargetGroupResponse(
            status_code=500,
            status_description="500 Internal Server Error",
            headers=headers,
            body="Internal Server Error",
        )
    return APIGatewayProxyResponse(status_code=500, headers=headers, body="Internal Server Error")
