"""Bridge running a WSGI application as the proxy adapter's HTTP handler.

Any WSGI framework (Flask, Django, Falcon, ...) can serve Lambda proxy events
unmodified by wrapping its application in ``WSGIHandler``.
"""

import io
import logging
import sys
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote_to_bytes

import httpx

from core.response import HEADER_ENCODING, ProxyResponseWriter

logger = logging.getLogger(__name__)

# WSGI environ key holding the ``httpx.Request`` built from the event, so an
# application can pass it to ``RequestAccessor.get_invocation_context``.
REQUEST_ENVIRON_KEY = "lambda_proxy.request"

WSGIApp = Callable[[Dict[str, Any], Callable[..., Any]], Iterable[bytes]]


def build_environ(request: httpx.Request) -> Dict[str, Any]:
    """Build a PEP 3333 environ dictionary from an HTTP request.

    Args:
        request: Request produced by ``RequestAccessor``

    Returns:
        WSGI environ
    """
    body = request.content
    url = request.url
    default_port = 443 if url.scheme == "https" else 80
    # PEP 3333: native strings carry the raw bytes decoded as latin-1
    raw_path = url.raw_path.split(b"?", 1)[0]

    environ: Dict[str, Any] = {
        "REQUEST_METHOD": request.method,
        "SCRIPT_NAME": "",
        "PATH_INFO": unquote_to_bytes(raw_path).decode("latin-1"),
        "QUERY_STRING": url.query.decode("ascii"),
        "SERVER_NAME": url.host,
        "SERVER_PORT": str(url.port or default_port),
        "SERVER_PROTOCOL": "HTTP/1.1",
        "CONTENT_LENGTH": str(len(body)),
        "CONTENT_TYPE": request.headers.get("content-type", ""),
        "wsgi.version": (1, 0),
        "wsgi.url_scheme": url.scheme,
        "wsgi.input": io.BytesIO(body),
        "wsgi.errors": sys.stderr,
        "wsgi.multithread": False,
        "wsgi.multiprocess": False,
        "wsgi.run_once": False,
        REQUEST_ENVIRON_KEY: request,
    }

    for raw_key, raw_value in request.headers.raw:
        key = raw_key.decode("latin-1")
        value = raw_value.decode("latin-1")
        environ_key = "HTTP_" + key.upper().replace("-", "_")
        if environ_key in ("HTTP_CONTENT_TYPE", "HTTP_CONTENT_LENGTH"):
            continue
        if environ_key in environ:
            environ[environ_key] = f"{environ[environ_key]},{value}"
        else:
            environ[environ_key] = value

    return environ


class WSGIHandler:
    """Adapts a WSGI application to the ``(writer, request)`` handler contract."""

    def __init__(self, app: WSGIApp) -> None:
        self.app = app

    def __call__(self, writer: ProxyResponseWriter, request: httpx.Request) -> None:
        environ = build_environ(request)
        headers_sent = False

        def start_response(
            status: str,
            response_headers: List[Tuple[str, str]],
            exc_info: Optional[Any] = None,
        ) -> Callable[[bytes], Any]:
            if exc_info:
                if headers_sent:
                    raise exc_info[1].with_traceback(exc_info[2])
                # Discard the headers of the failed response
                writer.headers = httpx.Headers(encoding=HEADER_ENCODING)
            writer.write_header(int(status.split(" ", 1)[0]))
            for key, value in response_headers:
                writer.add_header(key, value)
            return writer.write

        result = self.app(environ, start_response)
        try:
            for chunk in result:
                if chunk:
                    headers_sent = True
                    writer.write(chunk)
        finally:
            if hasattr(result, "close"):
                result.close()

        logger.debug(
            "WSGI application responded",
            extra={"http_method": request.method, "response_status": writer.status_code},
        )
