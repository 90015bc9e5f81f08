"""Helpers shared by the serverless API handlers."""

import asyncio
import json
from typing import Any, Awaitable, Callable, Mapping, Optional

from src.models.actor import Actor, Role
from src.utils.errors import AuthenticationRequiredError, MarketplaceError, ValidationError
from src.utils.logging import StructuredLogger, correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

logger = get_structured_logger(__name__)

USER_ID_HEADER = "x-user-id"
USER_ROLE_HEADER = "x-user-role"

# An operation returns (status code, JSON payload)
Operation = Callable[[StructuredLogger], Awaitable[tuple[int, Any]]]


def json_response(status_code: int, payload: Any, headers: Optional[dict] = None) -> dict:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json", **(headers or {})},
        "body": json.dumps(payload, default=str),
    }


def error_response(error: Exception) -> dict:
    """Map a domain error to its status; anything else is a 500."""
    if isinstance(error, MarketplaceError):
        return json_response(error.status_code, error.to_dict())
    return json_response(500, {"error": "InternalError", "message": "Internal server error"})


def get_header(request: Mapping[str, Any], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    headers = request.get("headers") or {}
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def request_method(request: Mapping[str, Any]) -> str:
    return str(request.get("method") or "GET").upper()


def query_params(request: Mapping[str, Any]) -> dict[str, Any]:
    """Query parameters; single-element lists are unwrapped."""
    params = {}
    for key, value in (request.get("query") or {}).items():
        if isinstance(value, list) and len(value) == 1:
            value = value[0]
        params[key] = value
    return params


def parse_json_body(request: Mapping[str, Any]) -> dict[str, Any]:
    body = request.get("body")
    if body is None or body == "":
        return {}
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            raise ValidationError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def body_flag(body: Mapping[str, Any], *keys: str, default: Optional[bool] = None) -> Optional[bool]:
    """JSON boolean under the first present key; strings such as "false" are rejected."""
    for key in keys:
        if key in body and body[key] is not None:
            value = body[key]
            if not isinstance(value, bool):
                raise ValidationError(f"{key} must be true or false", details={"field": key})
            return value
    return default


def actor_from_request(request: Mapping[str, Any], required: bool = True) -> Optional[Actor]:
    """Actor from the gateway-injected identity headers."""
    user_id = (get_header(request, USER_ID_HEADER) or "").strip()
    if not user_id:
        if required:
            raise AuthenticationRequiredError("Authentication required")
        return None

    role = (get_header(request, USER_ROLE_HEADER) or Role.USER.value).strip().lower()
    try:
        return Actor(id=user_id, role=Role(role))
    except ValueError:
        raise ValidationError(f"Unknown role: {role}")


def run_async(coro: Awaitable) -> Any:
    return asyncio.run(coro)


def handle_request(
    request: Mapping[str, Any],
    endpoint: str,
    operation: Operation,
    on_failure: Optional[Callable[[Exception], tuple[int, Any]]] = None,
) -> dict:
    """Run ``operation`` inside a correlation context and render its result.

    ``on_failure`` turns an unexpected error into a normal response for
    endpoints that must not return a server error.
    """
    LoggingConfig.ensure_configured()
    incoming_id = get_header(request, LoggingConfig.LOG_CORRELATION_ID_HEADER)

    with correlation_context(incoming_id) as correlation_id:
        log = logger.bind(endpoint=endpoint, method=request_method(request))
        trace = {LoggingConfig.LOG_CORRELATION_ID_HEADER: correlation_id}
        try:
            status_code, payload = run_async(operation(log))
            return json_response(status_code, payload, trace)
        except MarketplaceError as e:
            log.warning(
                "Request rejected",
                error=e.message,
                error_type=type(e).__name__,
                status_code=e.status_code,
            )
            if on_failure is not None and e.status_code >= 500:
                return json_response(*on_failure(e), trace)
            response = error_response(e)
        except Exception as e:
            log.exception("Unhandled error", error=str(e), error_type=type(e).__name__)
            if on_failure is not None:
                return json_response(*on_failure(e), trace)
            response = error_response(e)

        response["headers"].update(trace)
        return response
