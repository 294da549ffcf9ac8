"""
Inference Gateway - API Dependencies

Shared dependencies for FastAPI routes. Process-wide collaborators
(catalogue, cost calculator, callback sink, settings) live on app.state and
are set up by the server.
"""

import uuid
from typing import Dict, Optional

from fastapi import Header, Request

from ..config import GatewaySettings
from ..core.credentials import Credentials
from ..core.errors import ErrorDetails, ErrorType, InfraError, InvalidRequestError
from ..engine.context import ExecutionContext
from ..engine.events import CallbackHandlerFn
from ..pricing import CostCalculator
from ..registry import AvailableModels

MAX_TAGS = 32


def _app_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise InfraError(
            ErrorDetails(
                code="service_unavailable",
                message=f"{name} not initialized. Server may be starting up.",
                type=ErrorType.INFRA,
                request_id=get_request_id(request),
                retryable=True,
                retry_after=5
            ),
            status_code=503
        )
    return value


def get_request_id(request: Request) -> str:
    """Request id assigned by the observability middleware, or a fresh one."""
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = f"req_{uuid.uuid4().hex[:24]}"
        request.state.request_id = request_id
    return request_id


def get_gateway_settings(request: Request) -> GatewaySettings:
    return _app_state(request, "settings")


def get_available_models(request: Request) -> AvailableModels:
    return _app_state(request, "available_models")


def get_cost_calculator(request: Request) -> CostCalculator:
    return _app_state(request, "cost_calculator")


def get_callback_handler(request: Request) -> CallbackHandlerFn:
    return _app_state(request, "callback_handler")


def get_credentials(request: Request) -> Optional[Credentials]:
    """Credentials attached by CredentialsMiddleware (None when absent)."""
    return getattr(request.state, "credentials", None)


def extract_tags(
    request: Request,
    x_tags: Optional[str] = Header(default=None, alias="X-Tags"),
) -> Dict[str, str]:
    """
    Parse free-form telemetry tags from `X-Tags: team=search,env=prod`.

    Raises:
        InvalidRequestError: If a pair is not key=value
    """
    if not x_tags:
        return {}

    tags: Dict[str, str] = {}
    for pair in x_tags.split(","):
        pair = pair.strip()
        if not pair:
            continue
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise InvalidRequestError(
                f"Invalid tag '{pair}', expected key=value",
                param="X-Tags",
                request_id=get_request_id(request),
            )
        tags[key.strip()] = value.strip()

    if len(tags) > MAX_TAGS:
        raise InvalidRequestError(
            f"At most {MAX_TAGS} tags are allowed",
            param="X-Tags",
            request_id=get_request_id(request),
        )
    return tags


def start_execution_context(request: Request, name: str, tags: Dict[str, str]) -> ExecutionContext:
    """Open the request's execution span; the route must end it."""
    return ExecutionContext.start(name, tags=tags, request_id=get_request_id(request))


def add_standard_headers(
    ctx: ExecutionContext,
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> Dict[str, str]:
    """
    Standard response headers.

    X-Provider and X-Model feed the request metrics in the observability
    middleware.
    """
    headers = {"X-Request-Id": ctx.request_id}
    if ctx.trace_id:
        headers["X-Trace-Id"] = ctx.trace_id
    if provider:
        headers["X-Provider"] = provider
    if model:
        headers["X-Model"] = model
    return headers
