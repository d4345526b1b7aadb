"""Adapters between AWS Lambda proxy integrations and HTTP applications.

- ``aws_lambda``: the Lambda-facing adapter that converts events to HTTP
  requests and recorded responses back to Lambda responses
- ``wsgi``: a handler running any WSGI application behind that adapter
"""

from .aws_lambda import LambdaProxyAdapter, RequestHandler
from .wsgi import WSGIHandler

__all__ = ["LambdaProxyAdapter", "RequestHandler", "WSGIHandler"]
