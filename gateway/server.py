"""
Inference Gateway - API Server

FastAPI application exposing one OpenAI-compatible surface over several
upstream providers.

Features:
- Chat completions (JSON or SSE streaming) with tool calling
- Embeddings and image generation
- Model catalogue listing
- Per-request provider credentials and telemetry tags
- Full observability (metrics, tracing, logging)
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api import (
    CredentialsMiddleware,
    chat_router,
    embeddings_router,
    images_router,
    models_router,
)
from .api.dependencies import get_request_id
from .config import GatewaySettings, get_settings
from .core.errors import GatewayException
from .engine.events import CallbackHandlerFn
from .observability import (
    ObservabilityMiddleware,
    get_logger,
    metrics_endpoint,
    setup_observability,
)
from .observability.callbacks import default_callback_handler
from .pricing import CatalogCostCalculator, CostCalculator
from .registry import AvailableModels


def create_app(
    settings: Optional[GatewaySettings] = None,
    available_models: Optional[AvailableModels] = None,
    callback_handler: Optional[CallbackHandlerFn] = None,
    cost_calculator: Optional[CostCalculator] = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators default to the ones derived from settings; tests inject
    their own.
    """
    settings = settings or get_settings()
    available_models = available_models or AvailableModels.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        observability = setup_observability(settings)
        logger = get_logger("gateway.server")

        configured = [p.value for p, key in settings.provider_api_keys.items() if key]
        if not configured and not settings.use_stub_adapters:
            logger.warning(
                "No provider keys configured. Set OPENAI_API_KEY, ANTHROPIC_API_KEY, "
                "or GOOGLE_API_KEY, or send X-Provider-Api-Key per request"
            )

        logger.info(
            "Inference gateway ready",
            version=__version__,
            model_count=len(available_models),
            providers_with_keys=configured,
            stub_adapters=settings.use_stub_adapters,
        )

        yield

        observability["tracing"].shutdown()
        logger.info("Inference gateway stopped")

    app = FastAPI(
        title="Inference Gateway",
        description="One API for chat completions, embeddings and images across OpenAI, Anthropic and Google",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    app.state.settings = settings
    app.state.available_models = available_models
    app.state.callback_handler = callback_handler or default_callback_handler()
    app.state.cost_calculator = cost_calculator or CatalogCostCalculator(available_models)

    # First added = innermost
    app.add_middleware(CredentialsMiddleware)
    app.add_middleware(ObservabilityMiddleware)
    if settings.cors_allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(chat_router)
    app.include_router(embeddings_router)
    app.include_router(images_router)
    app.include_router(models_router)

    # ============================================================
    # Core Endpoints (not in routes)
    # ============================================================

    @app.get("/health")
    async def health_check():
        """Liveness check with catalogue summary."""
        return {
            "status": "healthy",
            "version": __version__,
            "models": len(app.state.available_models),
        }

    @app.get("/metrics")
    async def prometheus_metrics():
        """Prometheus metrics in text exposition format."""
        return metrics_endpoint()

    # ============================================================
    # Error handlers
    # ============================================================

    @app.exception_handler(GatewayException)
    async def gateway_exception_handler(request: Request, exc: GatewayException):
        """Handle all gateway errors."""
        if not exc.error.request_id:
            exc.error.request_id = get_request_id(request)

        headers = {
            "X-Request-Id": exc.error.request_id,
            "X-Error-Type": exc.error.type.value,
            "X-Error-Code": exc.error.code,
        }
        trace_id = exc.error.trace_id or getattr(request.state, "trace_id", "")
        if trace_id:
            headers["X-Trace-Id"] = trace_id
        if exc.error.retry_after:
            headers["Retry-After"] = str(exc.error.retry_after)
        if exc.error.provider:
            headers["X-Provider"] = exc.error.provider

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.error.to_dict(),
            headers=headers
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle standard HTTP exceptions."""
        request_id = get_request_id(request)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": "http_error",
                    "message": str(exc.detail),
                    "type": "semantic_error" if exc.status_code < 500 else "infra_error",
                    "request_id": request_id,
                    "retryable": exc.status_code >= 500
                }
            },
            headers={"X-Request-Id": request_id}
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        request_id = get_request_id(request)
        get_logger("gateway.server").exception(
            "Unhandled exception",
            error_type=type(exc).__name__,
            request_id=request_id,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": "internal_error",
                    "message": "An unexpected error occurred",
                    "type": "infra_error",
                    "request_id": request_id,
                    "retryable": True
                }
            },
            headers={"X-Request-Id": request_id}
        )

    return app


app = create_app()


# ============================================================
# Run server
# ============================================================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "gateway.server:app",
        host=settings.host,
        port=settings.port,
    )
