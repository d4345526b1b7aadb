"""Response recorder handed to the HTTP handler in place of a live connection."""

import base64
from http import HTTPStatus
from typing import Dict, List, Tuple, Union

import httpx

from core.errors import ResponseConversionError
from core.events import ALBTargetGroupResponse, APIGatewayProxyResponse

DEFAULT_STATUS_CODE = 200
CONTENT_TYPE_HEADER = "Content-Type"
HEADER_ENCODING = "utf-8"


def gateway_timeout() -> APIGatewayProxyResponse:
    """Fallback API Gateway response used when a request cannot be proxied."""
    return APIGatewayProxyResponse(status_code=HTTPStatus.GATEWAY_TIMEOUT.value)


def alb_gateway_timeout() -> ALBTargetGroupResponse:
    """Fallback target group response used when a request cannot be proxied."""
    return ALBTargetGroupResponse(
        status_code=HTTPStatus.GATEWAY_TIMEOUT.value,
        status_description=_status_description(HTTPStatus.GATEWAY_TIMEOUT.value),
    )


def _status_description(status_code: int) -> str:
    try:
        return f"{status_code} {HTTPStatus(status_code).phrase}"
    except ValueError:
        return str(status_code)


class ProxyResponseWriter:
    """Collects the status, headers and body written by an HTTP handler.

    The status defaults to 200 when the handler never sets one.
    """

    def __init__(self) -> None:
        self.headers = httpx.Headers(encoding=HEADER_ENCODING)
        self._status_code: int = 0
        self._body = bytearray()

    @property
    def status_code(self) -> int:
        return self._status_code or DEFAULT_STATUS_CODE

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    def write_header(self, status_code: int) -> None:
        """Set the response status code."""
        self._status_code = status_code

    def add_header(self, key: str, value: str) -> None:
        """Append a header value, keeping values already set for ``key``.

        Item assignment on ``headers`` replaces existing values instead.
        """
        self.headers = httpx.Headers(
            [*self.headers.raw, (key, value)], encoding=HEADER_ENCODING
        )

    def write(self, data: Union[bytes, str]) -> int:
        """Append ``data`` to the response body.

        Sets a Content-Type header when the handler has not set one yet.

        Returns:
            Number of bytes written
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        if CONTENT_TYPE_HEADER not in self.headers:
            self.headers[CONTENT_TYPE_HEADER] = _detect_content_type(data)
        self._body.extend(data)
        return len(data)

    def _collapse_headers(self) -> Tuple[Dict[str, str], Dict[str, List[str]]]:
        single: Dict[str, str] = {}
        multi: Dict[str, List[str]] = {}
        names: Dict[str, str] = {}
        for raw_key, raw_value in self.headers.raw:
            key = raw_key.decode(self.headers.encoding)
            value = raw_value.decode(self.headers.encoding)
            # First spelling of a header name wins
            name = names.setdefault(key.lower(), key)
            single.setdefault(name, value)
            multi.setdefault(name, []).append(value)
        return single, multi

    def _encoded_body(self) -> Tuple[str, bool]:
        try:
            return self._body.decode("utf-8"), False
        except UnicodeDecodeError:
            return base64.b64encode(bytes(self._body)).decode("ascii"), True

    def _checked_status(self) -> int:
        status_code = self.status_code
        if not 100 <= status_code <= 599:
            raise ResponseConversionError(f"Invalid status code on response: {status_code}")
        return status_code

    def get_proxy_response(self) -> APIGatewayProxyResponse:
        """Convert the recorded response into an API Gateway response.

        Raises:
            ResponseConversionError: If the recorded status code is invalid
        """
        status_code = self._checked_status()
        headers, multi_value_headers = self._collapse_headers()
        body, is_base64_encoded = self._encoded_body()
        return APIGatewayProxyResponse(
            status_code=status_code,
            headers=headers,
            multi_value_headers=multi_value_headers,
            body=body,
            is_base64_encoded=is_base64_encoded,
        )

    def get_alb_response(self) -> ALBTargetGroupResponse:
        """Convert the recorded response into an ALB target group response.

        Raises:
            ResponseConversionError: If the recorded status code is invalid
        """
        status_code = self._checked_status()
        headers, multi_value_headers = self._collapse_headers()
        body, is_base64_encoded = self._encoded_body()
        return ALBTargetGroupResponse(
            status_code=status_code,
            status_description=_status_description(status_code),
            headers=headers,
            multi_value_headers=multi_value_headers,
            body=body,
            is_base64_encoded=is_base64_encoded,
        )


def _detect_content_type(data: bytes) -> str:
    try:
        data.decode("utf-8")
    except UnicodeDecodeError:
        return "application/octet-stream"
    return "text/plain; charset=utf-8"
