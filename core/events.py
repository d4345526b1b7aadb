"""Data models for the Lambda proxy events and responses.

API Gateway (REST, payload format 1.0) and Application Load Balancer target
group invocations arrive as JSON documents. They are modelled here with
pydantic so the rest of the adapter works with typed objects instead of raw
dictionaries. Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from core.errors import UnsupportedEventTypeError


class _LambdaModel(BaseModel):
    """Base model for Lambda payloads.

    Unknown fields are kept so that nothing the platform sends is lost when a
    context is serialized into a header and read back later.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class APIGatewayProxyRequestContext(_LambdaModel):
    """Request context of an API Gateway proxy integration."""

    account_id: Optional[str] = None
    resource_id: Optional[str] = None
    stage: Optional[str] = None
    request_id: Optional[str] = None
    identity: Dict[str, Any] = Field(default_factory=dict)
    resource_path: Optional[str] = None
    authorizer: Optional[Dict[str, Any]] = None
    http_method: Optional[str] = None
    api_id: Optional[str] = None
    domain_name: Optional[str] = None
    request_time_epoch: Optional[int] = None


class ELBContext(_LambdaModel):
    """Load balancer section of a target group request context."""

    target_group_arn: Optional[str] = None


class ALBTargetGroupRequestContext(_LambdaModel):
    """Request context of an ALB target group invocation."""

    elb: ELBContext = Field(default_factory=ELBContext)


class APIGatewayProxyRequest(_LambdaModel):
    """HTTP request received through an API Gateway proxy integration."""

    resource: Optional[str] = None
    path: str = "/"
    http_method: str = "GET"
    headers: Optional[Dict[str, str]] = None
    multi_value_headers: Optional[Dict[str, List[str]]] = None
    query_string_parameters: Optional[Dict[str, str]] = None
    multi_value_query_string_parameters: Optional[Dict[str, List[str]]] = None
    path_parameters: Optional[Dict[str, str]] = None
    stage_variables: Optional[Dict[str, str]] = None
    request_context: APIGatewayProxyRequestContext = Field(
        default_factory=APIGatewayProxyRequestContext
    )
    body: Optional[str] = None
    is_base64_encoded: bool = False


class ALBTargetGroupRequest(_LambdaModel):
    """HTTP request received through an ALB target group."""

    http_method: str = "GET"
    path: str = "/"
    query_string_parameters: Optional[Dict[str, str]] = None
    multi_value_query_string_parameters: Optional[Dict[str, List[str]]] = None
    headers: Optional[Dict[str, str]] = None
    multi_value_headers: Optional[Dict[str, List[str]]] = None
    request_context: ALBTargetGroupRequestContext = Field(
        default_factory=ALBTargetGroupRequestContext
    )
    body: Optional[str] = None
    is_base64_encoded: bool = False


class APIGatewayProxyResponse(_LambdaModel):
    """Response returned to API Gateway."""

    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    multi_value_headers: Dict[str, List[str]] = Field(default_factory=dict)
    body: str = ""
    is_base64_encoded: bool = False

    def to_lambda(self) -> Dict[str, Any]:
        """Serialize to the dictionary shape the Lambda runtime expects."""
        return self.model_dump(by_alias=True)


class ALBTargetGroupResponse(_LambdaModel):
    """Response returned to an ALB target group."""

    status_code: int
    status_description: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    multi_value_headers: Dict[str, List[str]] = Field(default_factory=dict)
    body: str = ""
    is_base64_encoded: bool = False

    def to_lambda(self) -> Dict[str, Any]:
        """Serialize to the dictionary shape the Lambda runtime expects."""
        return self.model_dump(by_alias=True)


PlatformEvent = Union[APIGatewayProxyRequest, ALBTargetGroupRequest]
PlatformResponse = Union[APIGatewayProxyResponse, ALBTargetGroupResponse]


def parse_event(raw: Any) -> PlatformEvent:
    """Recognise a raw Lambda event and parse it into its model.

    Target group events are identified by the ``elb`` key of their request
    context; API Gateway proxy events by their top-level ``httpMethod``.

    Args:
        raw: Event as received by the Lambda handler

    Returns:
        The parsed event model

    Raises:
        UnsupportedEventTypeError: If the event matches no supported variant
            or fails validation
    """
    if not isinstance(raw, dict):
        raise UnsupportedEventTypeError(type(raw).__name__)

    request_context = raw.get("requestContext") or {}
    if isinstance(request_context, dict) and "elb" in request_context:
        model = ALBTargetGroupRequest
    elif "httpMethod" in raw:
        model = APIGatewayProxyRequest
    else:
        keys = ", ".join(sorted(str(k) for k in raw.keys()))
        raise UnsupportedEventTypeError("dict", f"unrecognised keys: {keys}")

    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise UnsupportedEventTypeError(model.__name__, str(e)) from e
