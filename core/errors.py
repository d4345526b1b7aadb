"""Error types raised while proxying Lambda events to an HTTP handler."""

from typing import Optional


class AdapterError(Exception):
    """Base class for every error raised by the proxy adapter."""

    pass


class DecodeError(AdapterError):
    """Raised when a base64-flagged event body is not valid base64."""

    pass


class RequestBuildError(AdapterError):
    """Raised when the event cannot be turned into a valid HTTP request."""

    pass


class SerializationError(AdapterError):
    """Raised when context or stage variables cannot be encoded as JSON."""

    pass


class DeserializationError(AdapterError):
    """Raised when a synthetic header holds malformed JSON."""

    pass


class MissingHeaderError(AdapterError):
    """Raised when a synthetic header is absent from the request."""

    def __init__(self, header_name: str) -> None:
        super().__init__(f"No {header_name} header in request")
        self.header_name = header_name


class UnsupportedEventTypeError(AdapterError):
    """Raised when the event is not one of the supported variants."""

    def __init__(self, event_type: str, detail: Optional[str] = None) -> None:
        message = f"Don't know how to handle type: {event_type}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.event_type = event_type


class ResponseConversionError(AdapterError):
    """Raised when the recorded response cannot be turned into a Lambda response."""

    pass


class ProxyError(AdapterError):
    """Returned by the adapter alongside a fallback response.

    The underlying failure is available as ``__cause__``.
    """

    pass
