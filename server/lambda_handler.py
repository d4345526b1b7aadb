"""AWS Lambda entrypoint serving a WSGI application.

Point the function handler at ``server.lambda_handler.lambda_handler`` and set
``LAMBDA_PROXY_CONFIG`` (or ship a ``config.yaml``) naming the application.
"""

import importlib
import logging
from typing import Any, Dict, Optional

from core.logging_utils import configure_json_logging
from core.request import RequestAccessor
from core.validators import ConfigurationError, load_config, resolve_host
from server.adapters.aws_lambda import LambdaContext, LambdaProxyAdapter
from server.adapters.wsgi import WSGIApp, WSGIHandler

logger = logging.getLogger(__name__)

# Global adapter for Lambda container reuse (warm starts)
_adapter: Optional[LambdaProxyAdapter] = None


def load_app(import_string: str) -> WSGIApp:
    """Import a WSGI application from a ``module.path:attribute`` string.

    Raises:
        ConfigurationError: If the module or attribute cannot be found
    """
    module_path, _, attribute = import_string.partition(":")
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import app module '{module_path}': {e}") from e

    app = getattr(module, attribute, None)
    if app is None or not callable(app):
        raise ConfigurationError(
            f"Module '{module_path}' has no callable attribute '{attribute}'"
        )
    return app


def get_adapter() -> LambdaProxyAdapter:
    """Get or create the adapter instance.

    Configuration, logging and the application are set up on the first call
    (cold start) and reused afterwards. The base path is configured here,
    before the adapter serves any request.
    """
    global _adapter

    if _adapter is not None:
        return _adapter

    config = load_config()
    configure_json_logging(level=config.logging.level, pretty=config.logging.pretty)

    accessor = RequestAccessor(
        host=resolve_host(config), strip_base_path=config.strip_base_path
    )
    _adapter = LambdaProxyAdapter(WSGIHandler(load_app(config.app)), accessor)

    logger.info(
        "Lambda proxy adapter initialized",
        extra={"app": config.app, "host": accessor.host, "base_path": accessor.base_path},
    )
    return _adapter


def lambda_handler(event: Dict[str, Any], context: Optional[LambdaContext]) -> Dict[str, Any]:
    """AWS Lambda handler function.

    Configuration errors are raised so the invocation fails visibly.
    """
    return get_adapter()(event, context)
