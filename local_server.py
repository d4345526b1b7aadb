"""Run a WSGI application locally behind the Lambda proxy adapter.

Every local HTTP request is turned into an API Gateway proxy event and sent
through the same adapter code path as in Lambda, so base path stripping,
synthetic headers and response conversion can be tried without deploying.
"""

import asyncio
import base64
import os
import time
import uuid

from aiohttp import web

from core.events import APIGatewayProxyRequest, APIGatewayProxyRequestContext
from core.logging_utils import configure_json_logging
from core.request import RequestAccessor
from core.validators import load_config, resolve_host
from server.adapters.aws_lambda import LambdaProxyAdapter
from server.adapters.wsgi import WSGIHandler
from server.lambda_handler import load_app

ADAPTER_KEY = web.AppKey("adapter", LambdaProxyAdapter)
STAGE = "local"


async def build_gateway_event(request: web.Request) -> APIGatewayProxyRequest:
    """Build an API Gateway proxy event from an aiohttp request."""
    raw_body = await request.read()
    try:
        body = raw_body.decode("utf-8")
        is_base64_encoded = False
    except UnicodeDecodeError:
        body = base64.b64encode(raw_body).decode("ascii")
        is_base64_encoded = True

    multi_value_headers = {}
    for key, value in request.headers.items():
        multi_value_headers.setdefault(key, []).append(value)
    multi_value_query = {}
    for key, value in request.query.items():
        multi_value_query.setdefault(key, []).append(value)

    return APIGatewayProxyRequest(
        path=request.path,
        http_method=request.method,
        headers={key: values[-1] for key, values in multi_value_headers.items()},
        multi_value_headers=multi_value_headers,
        query_string_parameters={key: values[-1] for key, values in multi_value_query.items()}
        or None,
        multi_value_query_string_parameters=multi_value_query or None,
        request_context=APIGatewayProxyRequestContext(
            stage=STAGE,
            request_id=str(uuid.uuid4()),
            http_method=request.method,
            resource_path=request.path,
            request_time_epoch=int(time.time() * 1000),
        ),
        body=body or None,
        is_base64_encoded=is_base64_encoded,
    )


async def handle_request(request: web.Request) -> web.Response:
    """Proxy any local request through the Lambda adapter."""
    adapter = request.app[ADAPTER_KEY]
    event = await build_gateway_event(request)
    # WSGI applications block, keep them off the event loop
    response, _ = await asyncio.to_thread(adapter.proxy, event)

    body = (
        base64.b64decode(response.body)
        if response.is_base64_encoded
        else response.body.encode("utf-8")
    )
    headers = [
        (key, value)
        for key, values in (response.multi_value_headers or {}).items()
        for value in values
    ] or list(response.headers.items())
    return web.Response(body=body, status=response.status_code, headers=headers)


def create_app(adapter: LambdaProxyAdapter) -> web.Application:
    """Create the aiohttp application serving every path through ``adapter``."""
    app = web.Application()
    app[ADAPTER_KEY] = adapter
    app.router.add_route("*", "/{tail:.*}", handle_request)
    return app


async def start_server(host: str = "localhost", port: int = 8000) -> None:
    """Start local HTTP server."""
    config = load_config()
    configure_json_logging(level=config.logging.level, pretty=True)

    accessor = RequestAccessor(host=resolve_host(config), strip_base_path=config.strip_base_path)
    adapter = LambdaProxyAdapter(WSGIHandler(load_app(config.app)), accessor)

    runner = web.AppRunner(create_app(adapter))
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    print("\n" + "=" * 50)
    print("🌐 Local Lambda proxy running!")
    print("=" * 50)
    print(f"URL: http://{host}:{port}")
    print(f"App: {config.app}")
    print("\nPress Ctrl+C to stop")
    print("=" * 50 + "\n")

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


if __name__ == "__main__":
    try:
        asyncio.run(start_server(port=int(os.environ.get("PORT", "8000"))))
    except KeyboardInterrupt:
        print("\n👋 Shutting down...")
