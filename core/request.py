"""Conversion of Lambda proxy events into ``httpx.Request`` objects.

The generated request carries the platform metadata that has no place in a
plain HTTP request (invocation context, stage variables) as JSON in custom
headers. Use the ``RequestAccessor`` read-back methods to recover them.
"""

import base64
import binascii
import json
import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote_plus

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from core.errors import (
    DecodeError,
    DeserializationError,
    MissingHeaderError,
    RequestBuildError,
    SerializationError,
    UnsupportedEventTypeError,
)
from core.events import (
    ALBTargetGroupRequest,
    ALBTargetGroupRequestContext,
    APIGatewayProxyRequest,
    APIGatewayProxyRequestContext,
)

logger = logging.getLogger(__name__)

# Environment variable holding a custom host for generated requests. The value
# must include a scheme, e.g. http://my-custom.host.com
CUSTOM_HOST_VARIABLE = "GO_API_HOST"

DEFAULT_SERVER_ADDRESS = "https://aws-serverless-go-api.com"

API_GW_CONTEXT_HEADER = "X-GoLambdaProxy-ApiGw-Context"
API_GW_STAGE_VARS_HEADER = "X-GoLambdaProxy-ApiGw-StageVars"
ALB_CONTEXT_HEADER = "X-GoLambdaProxy-Alb-Context"

_stage_vars_adapter = TypeAdapter(Optional[Dict[str, str]])


def normalize_base_path(base_path: str) -> str:
    """Normalize a base path to ``/segment`` form, or ``""`` for none."""
    if base_path.strip() == "":
        return ""

    new_base_path = base_path
    if not new_base_path.startswith("/"):
        new_base_path = "/" + new_base_path
    if new_base_path.endswith("/"):
        new_base_path = new_base_path[:-1]
    return new_base_path


def _to_json(data: Any) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True, exclude_unset=True)
    return json.dumps(data)


class RequestAccessor:
    """Builds HTTP requests from proxy events and reads platform data back.

    The base path is configuration: set it once at startup, before the
    accessor is shared between concurrent invocations.
    """

    def __init__(self, host: Optional[str] = None, strip_base_path: str = "") -> None:
        """Initialize the accessor.

        Args:
            host: Scheme and host prepended to every request path. Defaults to
                the ``GO_API_HOST`` environment variable, then to
                ``DEFAULT_SERVER_ADDRESS``
            strip_base_path: Base path removed from incoming request paths
        """
        if host is None:
            host = os.environ.get(CUSTOM_HOST_VARIABLE) or DEFAULT_SERVER_ADDRESS
        self.host = host
        self._strip_base_path = normalize_base_path(strip_base_path)

    @property
    def base_path(self) -> str:
        return self._strip_base_path

    def strip_base_path(self, base_path: str) -> str:
        """Set the base path removed from request paths before routing.

        Used when API Gateway serves the function under a base path mapping
        of a custom domain name.

        Args:
            base_path: Raw base path, e.g. ``"api"`` or ``"/api/"``

        Returns:
            The normalized base path that will be stripped (``""`` clears it)
        """
        self._strip_base_path = normalize_base_path(base_path)
        return self._strip_base_path

    def decode_body(self, body: Optional[str], is_base64_encoded: bool) -> bytes:
        """Return the raw bytes of an event body.

        Raises:
            DecodeError: If the body is flagged base64 but is not valid base64
        """
        body = body or ""
        if is_base64_encoded:
            try:
                return base64.b64decode(body, validate=True)
            except (binascii.Error, ValueError) as e:
                logger.error(f"Failed to decode base64 body: {e}")
                raise DecodeError(f"Invalid base64-encoded body: {e}") from e
        return body.encode("utf-8")

    def _query_string(
        self,
        params: Optional[Mapping[str, str]],
        multi_value_params: Optional[Mapping[str, Sequence[str]]],
    ) -> str:
        pairs: List[Tuple[str, str]] = []
        if multi_value_params:
            for key, values in multi_value_params.items():
                for value in values:
                    pairs.append((key, value))
        elif params:
            pairs = list(params.items())

        if not pairs:
            return ""
        return "?" + "&".join(f"{quote_plus(k)}={quote_plus(v)}" for k, v in pairs)

    def _path(self, request_path: str) -> str:
        path = request_path or ""
        if self._strip_base_path and len(self._strip_base_path) > 1:
            if path.startswith(self._strip_base_path):
                path = path.replace(self._strip_base_path, "", 1)
        if not path.startswith("/"):
            path = "/" + path
        return path

    def build_request(
        self,
        body: Optional[str],
        is_base64_encoded: bool,
        query_string_parameters: Optional[Mapping[str, str]],
        path: str,
        method: str,
        headers: Optional[Mapping[str, str]],
        context_header: str,
        context_data: Any,
        multi_value_query_string_parameters: Optional[Mapping[str, Sequence[str]]] = None,
        multi_value_headers: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> httpx.Request:
        """Build an HTTP request from the fields common to all event types.

        Args:
            body: Event body, possibly base64 encoded
            is_base64_encoded: Whether ``body`` is base64 encoded
            query_string_parameters: Single-value query parameters
            path: Request path as seen by the platform
            method: HTTP method
            headers: Single-value request headers
            context_header: Name of the header receiving the JSON context
            context_data: Invocation context to serialize into that header
            multi_value_query_string_parameters: Used instead of
                ``query_string_parameters`` when present
            multi_value_headers: Used instead of ``headers`` when present

        Returns:
            The populated request

        Raises:
            DecodeError: If the body cannot be decoded
            RequestBuildError: If the resulting URL is not a valid absolute URL
            SerializationError: If the context cannot be encoded as JSON
        """
        content = self.decode_body(body, is_base64_encoded)
        query_string = self._query_string(
            query_string_parameters, multi_value_query_string_parameters
        )
        request_path = self._path(path)
        url = self.host + request_path + query_string

        header_items: List[Tuple[str, str]] = []
        if multi_value_headers:
            for key, values in multi_value_headers.items():
                header_items.extend((key, value) for value in values)
        elif headers:
            header_items = list(headers.items())

        try:
            # Event header values are arbitrary strings, not only ASCII
            request = httpx.Request(
                (method or "").upper(),
                url,
                headers=httpx.Headers(header_items, encoding="utf-8"),
                content=content,
            )
        except (httpx.InvalidURL, ValueError, TypeError) as e:
            logger.error(f"Could not convert request {method}:{path} to HTTP request: {e}")
            raise RequestBuildError(f"Could not build request for {url!r}: {e}") from e
        if not request.url.scheme or not request.url.host:
            logger.error(f"Could not convert request {method}:{path} to HTTP request")
            raise RequestBuildError(f"Request URL {url!r} is not absolute")

        # Set after the client headers so a client cannot supply its own context.
        try:
            request.headers[context_header] = _to_json(context_data)
        except (TypeError, ValueError, PydanticSerializationError) as e:
            logger.error(f"Could not serialize context for header {context_header}: {e}")
            raise SerializationError(f"Could not serialize request context: {e}") from e

        return request

    def proxy_event_to_http_request(self, event: Any) -> httpx.Request:
        """Convert an API Gateway or ALB target group event into a request.

        API Gateway requests get the JSON stage variables in an extra header.
        Read the metadata back with ``get_invocation_context``,
        ``get_stage_variables`` and ``get_alb_context``.

        Raises:
            UnsupportedEventTypeError: If ``event`` is not a supported model
            AdapterError: Any conversion failure from ``build_request``
        """
        if isinstance(event, APIGatewayProxyRequest):
            request = self.build_request(
                event.body,
                event.is_base64_encoded,
                event.query_string_parameters,
                event.path,
                event.http_method,
                event.headers,
                API_GW_CONTEXT_HEADER,
                event.request_context,
                multi_value_query_string_parameters=event.multi_value_query_string_parameters,
                multi_value_headers=event.multi_value_headers,
            )
            try:
                request.headers[API_GW_STAGE_VARS_HEADER] = _to_json(event.stage_variables)
            except (TypeError, ValueError, PydanticSerializationError) as e:
                logger.error(f"Could not serialize stage variables: {e}")
                raise SerializationError(f"Could not serialize stage variables: {e}") from e
            return request

        if isinstance(event, ALBTargetGroupRequest):
            return self.build_request(
                event.body,
                event.is_base64_encoded,
                event.query_string_parameters,
                event.path,
                event.http_method,
                event.headers,
                ALB_CONTEXT_HEADER,
                event.request_context,
                multi_value_query_string_parameters=event.multi_value_query_string_parameters,
                multi_value_headers=event.multi_value_headers,
            )

        raise UnsupportedEventTypeError(type(event).__name__)

    def get_invocation_context(self, request: httpx.Request) -> APIGatewayProxyRequestContext:
        """Read the API Gateway request context back from a request.

        Raises:
            MissingHeaderError: If the context header is absent or empty
            DeserializationError: If the header is not a valid context
        """
        raw = request.headers.get(API_GW_CONTEXT_HEADER, "")
        if raw == "":
            raise MissingHeaderError(API_GW_CONTEXT_HEADER)
        try:
            return APIGatewayProxyRequestContext.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Error while deserializing context: {e}")
            raise DeserializationError(f"Invalid API Gateway context header: {e}") from e

    def get_stage_variables(self, request: httpx.Request) -> Dict[str, str]:
        """Read the API Gateway stage variables back from a request.

        Unlike ``get_invocation_context``, a missing header is not an error:
        the result is an empty mapping.

        Raises:
            DeserializationError: If the header is not a JSON string mapping
        """
        raw = request.headers.get(API_GW_STAGE_VARS_HEADER, "")
        if raw == "":
            return {}
        try:
            stage_vars = _stage_vars_adapter.validate_json(raw)
        except ValidationError as e:
            logger.error(f"Error while deserializing stage variables: {e}")
            raise DeserializationError(f"Invalid stage variables header: {e}") from e
        return stage_vars or {}

    def get_alb_context(self, request: httpx.Request) -> ALBTargetGroupRequestContext:
        """Read the ALB target group request context back from a request.

        Raises:
            MissingHeaderError: If the context header is absent or empty
            DeserializationError: If the header is not a valid context
        """
        raw = request.headers.get(ALB_CONTEXT_HEADER, "")
        if raw == "":
            raise MissingHeaderError(ALB_CONTEXT_HEADER)
        try:
            return ALBTargetGroupRequestContext.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Error while deserializing ALB context: {e}")
            raise DeserializationError(f"Invalid ALB context header: {e}") from e
