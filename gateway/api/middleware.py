"""
Inference Gateway - API Middleware

Extracts per-request provider credentials from transport headers into
request state, where the routes pick them up.

Headers:
- X-Provider-Api-Key: provider API key for this request
- X-Provider-Endpoint: custom provider base URL (requires the key header)
"""

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ..core.credentials import ApiKeyCredentials, ApiKeyWithEndpointCredentials

API_KEY_HEADER = "x-provider-api-key"
ENDPOINT_HEADER = "x-provider-endpoint"


class CredentialsMiddleware(BaseHTTPMiddleware):
    """
    Attach request credentials to request.state.credentials.

    The value is None when the caller sent no key; the engine then falls back
    to the keys in the environment.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        api_key = request.headers.get(API_KEY_HEADER, "").strip()
        endpoint = request.headers.get(ENDPOINT_HEADER, "").strip()

        if not api_key:
            request.state.credentials = None
        elif endpoint:
            request.state.credentials = ApiKeyWithEndpointCredentials(key=api_key, url=endpoint)
        else:
            request.state.credentials = ApiKeyCredentials(key=api_key)

        return await call_next(request)
